"""
Engine Error Types

All engine errors subclass ValueError so existing callers that catch
ValueError for bad input keep working.
"""


class LoanEngineError(ValueError):
    """Base class for loan engine errors"""


class InvalidInputError(LoanEngineError):
    """Raised for malformed inputs: non-positive principal or term, rate out of range, negative amounts"""


class UnsupportedMethodError(LoanEngineError):
    """Raised when a calculation method is outside the supported set"""

    def __init__(self, method):
        self.method = method
        super().__init__(f"Unsupported calculation method: {method}")
