from typing import Optional, Dict, Any


class GovEngineException(Exception):
    """Base exception for all governance engine errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class ConfigurationError(GovEngineException):
    """Raised when engine settings or a tenant naming scheme are invalid."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=422, details=details)


class AdapterError(GovEngineException):
    """Raised when an external inventory or directory adapter fails."""
    def __init__(self, message: str, code: str = "adapter_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=502, details=details)


class ExternalAPIError(AdapterError):
    """Raised when a remote API call fails after retries."""
    def __init__(self, message: str, code: str = "external_api_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class CapabilityUnavailableError(GovEngineException):
    """Raised when an enhanced data source is requested but not reachable."""
    def __init__(self, capability: str, required_permissions: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Capability '{capability}' is not available",
            code="capability_unavailable",
            status_code=424,
            details={"capability": capability, "required_permissions": required_permissions, **(details or {})},
        )
        self.capability = capability
        self.required_permissions = required_permissions


class AssessmentCancelledError(GovEngineException):
    """Raised inside an analyzer when the run's cancellation token is set."""
    def __init__(self, message: str = "Assessment run was cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="assessment_cancelled", status_code=499, details=details)
