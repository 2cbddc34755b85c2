# billing/signals.py
import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from shared.constants import StatusChoices
from .calculations import classify_status, project_record
from .models import Fee, FeePaymentRecord, StudentFeeRecord

logger = logging.getLogger(__name__)


# ============================================================
# FEE STATUS SYNC (both ledgers)
# ============================================================

@receiver(pre_save, sender=StudentFeeRecord)
@receiver(pre_save, sender=Fee)
def sync_fee_status(sender, instance, **kwargs):
    """
    Keep the stored status in line with the balance.
    A row whose balance reaches zero is always Paid.
    """
    projection = project_record(instance)
    status = classify_status(
        projection['final_fee'],
        projection['paid_amount'],
        projection['balance_fee'],
        instance.due_date,
    )

    if status != instance.status:
        logger.debug(
            f"{sender.__name__} {instance.pk or '(new)'} status "
            f"{instance.status} -> {status}"
        )
        instance.status = status


# ============================================================
# PAYMENT AUDIT
# ============================================================

@receiver(post_save, sender=FeePaymentRecord)
def log_fee_payment(sender, instance, created, **kwargs):
    if not created:
        return

    target = instance.fee_record or instance.legacy_fee
    logger.info(
        f"Payment {instance.receipt_number}: ₹{instance.amount_paid} for student "
        f"{instance.student_id} via {instance.payment_method}"
    )
    if target is not None and target.status == StatusChoices.PAID:
        logger.info(f"{target} is now fully paid")
