# errors.py
# Tagged error types for the report engine and the adapter for foreign errors.

from typing import Any, Dict, Optional


class EngineError(Exception):
    status_code = 500
    error_type = "InternalError"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": False, "error": self.message, "errorType": self.error_type}
        if self.details is not None:
            out["details"] = self.details
        return out


class MalformedRequest(EngineError):
    status_code = 400
    error_type = "MalformedRequest"


class ValidationError(EngineError):
    status_code = 400
    error_type = "ValidationError"


class NotFound(EngineError):
    status_code = 404
    error_type = "NotFound"


class Forbidden(EngineError):
    status_code = 403
    error_type = "Forbidden"


class RateLimited(EngineError):
    status_code = 429
    error_type = "RateLimited"


class InternalError(EngineError):
    status_code = 500
    error_type = "InternalError"


# keyword -> error class, first match wins
_KEYWORD_RULES = (
    (("quota", "limit", "too many requests"), RateLimited),
    (("permission", "access", "forbidden"), Forbidden),
    (("not found",), NotFound),
)


def classify_exception(exc: BaseException) -> EngineError:
    """
    Map an exception raised outside the engine onto the error taxonomy.
    Engine errors pass through untouched; anything else is sniffed by message.
    """
    if isinstance(exc, EngineError):
        return exc
    msg = str(exc) or exc.__class__.__name__
    low = msg.lower()
    for keywords, cls in _KEYWORD_RULES:
        if any(k in low for k in keywords):
            return cls(msg)
    return InternalError(msg)
