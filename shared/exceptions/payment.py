"""
Payment-related exceptions.
"""


class PaymentProcessingError(Exception):
    """Exception raised for payment processing errors."""

    def __init__(self, message, user_friendly=False, original_error=None):
        self.message = message
        self.user_friendly = user_friendly
        self.original_error = original_error
        super().__init__(self.message)


class PaymentBlockedError(PaymentProcessingError):
    """Exception raised when a fee record is blocked for payment."""
    pass


class OverpaymentError(PaymentProcessingError):
    """Exception raised when a payment exceeds the outstanding balance."""
    pass
