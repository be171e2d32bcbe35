# sessionguard/core/exceptions.py
"""
Errors raised by the session lifecycle and rate-limiting subsystem.

Each error carries a message for humans and a ``details`` dict with the
context (key, operation, purpose...) that ends up in logs and, where safe,
in HTTP responses.
"""

from typing import Optional, Dict, Any


class SessionGuardError(Exception):
    """Root of all guard errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def _add_detail(self, name: str, value: Any) -> None:
        if value is not None:
            self.details[name] = value

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f"{self.message} | Details: {self.details}"


class ServiceError(SessionGuardError):
    """A backing service misbehaved"""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation
        self._add_detail('service', service_name)
        self._add_detail('operation', operation)


class StoreUnavailableError(ServiceError):
    """
    The shared Redis store did not answer.

    Rate-limit checks and revocation let this propagate so the caller fails
    closed; only session tracking swallows it.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, service_name="Redis", operation=operation, details=details)
        self.key = key
        self._add_detail('key', key)


class ConfigurationError(SessionGuardError):
    """Invalid settings detected while building a component"""

    def __init__(self, message: str, component: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.component = component
        self._add_detail('component', component)


class RateLimitExceededError(SessionGuardError):
    """An identity used up its attempts for a purpose in the current window"""

    def __init__(
        self,
        message: str,
        purpose: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.purpose = purpose
        self.retry_after_seconds = retry_after_seconds
        self._add_detail('purpose', purpose)
        self._add_detail('retry_after_seconds', retry_after_seconds)


class SessionError(SessionGuardError):

    def __init__(self, message: str, session_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.session_id = session_id
        # Session ids are credentials; only a prefix is kept
        self._add_detail('session_id', session_id[:8] if session_id else None)


class SessionExpiredError(SessionError):
    """The session outlived its absolute lifetime"""

    def __init__(
        self,
        message: str = "Session expired (absolute TTL)",
        session_id: Optional[str] = None,
        age_ms: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, session_id=session_id, details=details)
        self.age_ms = age_ms
        self._add_detail('age_ms', age_ms)


def store_error(message: str, key: Optional[str] = None, operation: Optional[str] = None) -> StoreUnavailableError:
    return StoreUnavailableError(message, key=key, operation=operation)


def config_error(message: str, component: str) -> ConfigurationError:
    return ConfigurationError(message, component=component)
