# core/services.py
"""
CORE SERVICES - academic year lifecycle.
The current-year switch lives here and nowhere else.
"""
import logging
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import ProtectedError

from .exceptions import (
    CurrentYearVerificationError,
    DataAccessError,
    ValidationError,
)
from .models import AcademicYear

logger = logging.getLogger(__name__)


class AcademicYearService:
    """
    Service for academic-year business logic.
    """

    @staticmethod
    def get_current_year() -> Optional[AcademicYear]:
        try:
            return AcademicYear.objects.current()
        except DatabaseError as e:
            logger.error(f"Failed to load current academic year: {e}", exc_info=True)
            raise DataAccessError("Failed to load the current academic year", user_friendly=True)

    @staticmethod
    def get_years_in_order() -> List[AcademicYear]:
        """All academic years ascending by start date."""
        try:
            return list(AcademicYear.objects.in_start_order())
        except DatabaseError as e:
            logger.error(f"Failed to load academic years: {e}", exc_info=True)
            raise DataAccessError("Failed to load academic years", user_friendly=True)

    @staticmethod
    def get_year(year_id) -> AcademicYear:
        try:
            return AcademicYear.objects.get(pk=year_id)
        except (AcademicYear.DoesNotExist, ValueError, TypeError):
            raise ValidationError(f"Academic year {year_id} not found", user_friendly=True)
        except DatabaseError as e:
            logger.error(f"Failed to load academic year {year_id}: {e}", exc_info=True)
            raise DataAccessError("Failed to load academic year", user_friendly=True)

    @staticmethod
    def create_year(year_data: Dict[str, Any]) -> AcademicYear:
        """
        Create an academic year.

        Always inserted as not current; if `is_current` was requested the
        switch happens afterwards through set_current_year.
        """
        make_current = bool(year_data.get('is_current'))
        try:
            year = AcademicYear.objects.create(
                name=year_data['name'],
                start_date=year_data['start_date'],
                end_date=year_data['end_date'],
                is_current=False,
            )
        except KeyError as e:
            raise ValidationError(f"Missing field: {e.args[0]}", user_friendly=True)
        except DjangoValidationError as e:
            logger.warning(f"Academic year validation error: {e}")
            raise ValidationError(f"Validation error: {e}", user_friendly=True, details=getattr(e, 'message_dict', {}))

        logger.info(f"Academic year created: {year.name}")

        if make_current:
            year = AcademicYearService.set_current_year(year.pk)
        return year

    @staticmethod
    def update_year(year_id, year_data: Dict[str, Any]) -> AcademicYear:
        """Update name/dates; `is_current` is routed through the switch."""
        year = AcademicYearService.get_year(year_id)

        for field in ('name', 'start_date', 'end_date'):
            if field in year_data:
                setattr(year, field, year_data[field])
        try:
            year.save()
        except DjangoValidationError as e:
            logger.warning(f"Academic year validation error: {e}")
            raise ValidationError(f"Validation error: {e}", user_friendly=True, details=getattr(e, 'message_dict', {}))

        if 'is_current' in year_data:
            if year_data['is_current']:
                return AcademicYearService.set_current_year(year.pk)
            AcademicYear.objects.filter(pk=year.pk).update(is_current=False)
            year.refresh_from_db()

        logger.info(f"Academic year updated: {year.name}")
        return year

    @staticmethod
    def delete_year(year_id) -> bool:
        year = AcademicYearService.get_year(year_id)
        if year.is_current:
            raise ValidationError("The current academic year cannot be deleted", user_friendly=True)
        try:
            year.delete()
        except ProtectedError:
            raise ValidationError(
                f"{year.name} still has fee records or promotions and cannot be deleted",
                user_friendly=True,
            )
        logger.info(f"Academic year deleted: {year.name}")
        return True

    @staticmethod
    def set_current_year(year_id) -> AcademicYear:
        """
        Make `year_id` the single current academic year.

        Unset-all and set-one run in one transaction with the year rows
        locked, so no committed state has zero or two current years. The
        re-read happens before commit; a failed verification rolls back.

        Raises:
            ValidationError: unknown year
            CurrentYearVerificationError: target not observed as current
        """
        with transaction.atomic():
            locked = list(AcademicYear.objects.select_for_update().order_by('pk'))
            if not any(str(year.pk) == str(year_id) for year in locked):
                raise ValidationError(f"Academic year {year_id} not found", user_friendly=True)

            AcademicYear.objects.exclude(pk=year_id).filter(is_current=True).update(is_current=False)
            AcademicYear.objects.filter(pk=year_id).update(is_current=True)

            verified = AcademicYear.objects.filter(pk=year_id).values_list('is_current', flat=True).first()
            if not verified:
                logger.error(f"Current academic year verification failed for {year_id}")
                raise CurrentYearVerificationError(details={'academic_year_id': str(year_id)})

        year = AcademicYear.objects.get(pk=year_id)
        logger.info(f"Current academic year set to {year.name}")
        return year
