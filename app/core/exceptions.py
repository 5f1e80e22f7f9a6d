from typing import Any, Dict, List, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class ComponentConfigError(AppException):
    """Raised when a salary component set breaks the structural rules required by the resolver."""
    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__(
            message="Invalid salary component configuration: " + "; ".join(problems),
            status_code=422,
            error_code="INVALID_COMPONENT_SET",
            details={"problems": problems}
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )

class PayrollLockedError(AppException):
    def __init__(self, month: int, year: int):
        super().__init__(
            message=f"Payroll for {month}/{year} is locked and cannot be reposted.",
            status_code=409,
            error_code="PAYROLL_PERIOD_LOCKED",
            details={"month": month, "year": year}
        )
