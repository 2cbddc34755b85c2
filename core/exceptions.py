# core/exceptions.py
class SchoolManagementException(Exception):
    """Base exception for all school management system errors."""

    status_code = 400

    def __init__(self, message=None, user_friendly=False, details=None, error_code=None):
        self.message = message or "An error occurred"
        self.user_friendly = user_friendly
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self):
        return {
            'error': self.message if self.user_friendly else "Operation failed.",
            'error_code': self.error_code,
            'details': self.details,
        }


class ValidationError(SchoolManagementException):
    """Data validation errors."""
    def __init__(self, message=None, user_friendly=False, details=None):
        super().__init__(message or "Validation failed", user_friendly, details, "VALIDATION_ERROR")


class DataAccessError(SchoolManagementException):
    """A read against the database failed; nothing was written."""
    status_code = 503

    def __init__(self, message=None, user_friendly=False, details=None):
        super().__init__(message or "Failed to load data", user_friendly, details, "DATA_ACCESS_ERROR")


class PromotionValidationError(SchoolManagementException):
    """Promotion refused before any mutation (sequence, fee structures, dues actions)."""
    def __init__(self, message=None, user_friendly=True, details=None, error_code="PROMOTION_NOT_READY"):
        super().__init__(message or "Promotion is not ready", user_friendly, details, error_code)


class UnassignedDuesActionsError(PromotionValidationError):
    """Some students with outstanding dues have no action assigned."""
    def __init__(self, unassigned_count, student_ids=None):
        self.unassigned_count = unassigned_count
        super().__init__(
            f"Please assign actions for all {unassigned_count} students with outstanding fees.",
            details={'unassigned_count': unassigned_count, 'student_ids': list(student_ids or [])},
            error_code="DUES_ACTIONS_MISSING",
        )


class MissingFeeStructuresError(PromotionValidationError):
    """Target classes have no active fee structure in the target year."""
    status_code = 409

    def __init__(self, missing, year_name=''):
        self.missing = list(missing)
        super().__init__(
            f"Missing fee plans for {', '.join(self.missing)}" + (f" ({year_name})" if year_name else ''),
            details={'missing': self.missing, 'year': year_name},
            error_code="MISSING_FEE_PLANS",
        )


class WorkflowStateError(SchoolManagementException):
    """A promotion workflow step was requested from the wrong state."""
    status_code = 409

    def __init__(self, message=None, user_friendly=True, details=None):
        super().__init__(message or "Invalid workflow step", user_friendly, details, "WORKFLOW_STATE_ERROR")


class PromotionExecutionError(SchoolManagementException):
    """Bulk promotion aborted; earlier dues writes are not rolled back."""
    status_code = 500

    def __init__(self, message=None, user_friendly=True, details=None):
        super().__init__(message or "Failed to execute promotion", user_friendly, details, "PROMOTION_FAILED")


class CurrentYearVerificationError(PromotionExecutionError):
    """The target year was not observed as current after the switch."""
    def __init__(self, message=None, details=None):
        super().__init__(message or "Academic year was not properly set as current", True, details)
        self.error_code = "CURRENT_YEAR_NOT_SET"
