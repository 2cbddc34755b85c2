"""
Toast notifications for operator feedback.
Fire-and-forget: delivered through django.contrib.messages and mirrored to the log.
DEPENDS ON: Django
"""
import logging

from django.contrib import messages

logger = logging.getLogger(__name__)

VARIANT_DEFAULT = 'default'
VARIANT_DESTRUCTIVE = 'destructive'

_VARIANT_LEVELS = {
    VARIANT_DEFAULT: messages.SUCCESS,
    VARIANT_DESTRUCTIVE: messages.ERROR,
}


class NotificationService:
    """Operator-facing toast channel."""

    @staticmethod
    def toast(request, title, description, variant=VARIANT_DEFAULT):
        """
        Queue a toast for the current operator.

        Args:
            request: HttpRequest (may be None for shell/management usage)
            title: Short heading, e.g. "Promotion Complete"
            description: Human-readable message
            variant: 'default' or 'destructive'

        Returns:
            dict: The toast payload, also suitable for JSON responses
        """
        if variant not in _VARIANT_LEVELS:
            variant = VARIANT_DEFAULT

        payload = {'title': title, 'description': description, 'variant': variant}

        if variant == VARIANT_DESTRUCTIVE:
            logger.warning(f"Toast [{title}]: {description}")
        else:
            logger.info(f"Toast [{title}]: {description}")

        if request is not None:
            messages.add_message(
                request,
                _VARIANT_LEVELS[variant],
                f"{title}: {description}",
                extra_tags=variant,
                fail_silently=True,
            )
        return payload

    @staticmethod
    def error(request, description, title="Error"):
        return NotificationService.toast(request, title, description, VARIANT_DESTRUCTIVE)

    @staticmethod
    def success(request, description, title="Success"):
        return NotificationService.toast(request, title, description, VARIANT_DEFAULT)
