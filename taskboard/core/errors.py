"""Error taxonomy and user-facing error classification."""

from enum import Enum

from pydantic import BaseModel


class TaskboardError(Exception):
    """Base class for errors raised by the category and task stores."""


class NotFoundError(TaskboardError, KeyError):
    """A share code or record does not match anything in the store."""

    def __str__(self) -> str:
        # KeyError wraps its message in quotes
        return str(self.args[0]) if self.args else ""


class AlreadyMemberError(TaskboardError):
    """A user tried to join a shared category they already belong to."""


class ValidationError(TaskboardError, ValueError):
    """A blank name or title was submitted."""


class PermissionDeniedError(TaskboardError, PermissionError):
    """A user acted on a category they cannot access."""


class ShareCodeCollisionError(TaskboardError):
    """No unused share code was found within the configured attempts."""


class DuplicateRecordError(RuntimeError):
    """An insert was rejected because a unique field value is already stored."""


class PartialFailureError(TaskboardError):
    """Some writes of a multi-document operation did not converge.

    Attributes:
        operation: Name of the bulk operation (e.g. "reorder", "cascade_delete")
        failed_ids: Record ids whose writes still failed after retrying
    """

    def __init__(self, operation: str, failed_ids: list[str]) -> None:
        self.operation = operation
        self.failed_ids = failed_ids
        super().__init__(f"{operation} did not converge for {len(failed_ids)} record(s): {', '.join(failed_ids)}")


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Sharing errors
    ERR_SHARE_CODE_NOT_FOUND = "ERR_SHARE_CODE_NOT_FOUND"
    ERR_ALREADY_MEMBER = "ERR_ALREADY_MEMBER"
    ERR_SHARE_CODE_EXHAUSTED = "ERR_SHARE_CODE_EXHAUSTED"

    # Record errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_PARTIAL_FAILURE = "ERR_PARTIAL_FAILURE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


DEFAULT_LOCALE = "en"

# Join failures are shown to the user verbatim, so they are localized.
_JOIN_MESSAGES: dict[str, dict[str, tuple[str, str]]] = {
    "en": {
        ErrorCode.ERR_SHARE_CODE_NOT_FOUND: (
            "The share code is incorrect.",
            "Check the code with the list owner and try again.",
        ),
        ErrorCode.ERR_ALREADY_MEMBER: (
            "You are already a member of this category.",
            "Open your shared lists to find it.",
        ),
    },
    "ar": {
        ErrorCode.ERR_SHARE_CODE_NOT_FOUND: (
            "رمز المشاركة غير صحيح",
            "تحقق من الرمز مع صاحب القائمة وحاول مرة أخرى.",
        ),
        ErrorCode.ERR_ALREADY_MEMBER: (
            "أنت عضو بالفعل في هذا التصنيف",
            "افتح قوائمك المشتركة للعثور عليه.",
        ),
    },
}


def localized_join_message(code: str, locale: str = DEFAULT_LOCALE) -> tuple[str, str]:
    """Return (message, suggestion) for a join failure code, falling back to English."""
    messages = _JOIN_MESSAGES.get(locale, _JOIN_MESSAGES[DEFAULT_LOCALE])
    return messages[code]


def classify_error_with_response(exception: Exception, locale: str = DEFAULT_LOCALE) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised by a store operation
        locale: Locale used for messages shown verbatim to the user

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, AlreadyMemberError):
        message, suggestion = localized_join_message(ErrorCode.ERR_ALREADY_MEMBER, locale)
        return ErrorResponse(
            code=ErrorCode.ERR_ALREADY_MEMBER,
            message=message,
            suggestion=suggestion,
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, NotFoundError) and "share code" in str(exception).lower():
        message, suggestion = localized_join_message(ErrorCode.ERR_SHARE_CODE_NOT_FOUND, locale)
        return ErrorResponse(
            code=ErrorCode.ERR_SHARE_CODE_NOT_FOUND,
            message=message,
            suggestion=suggestion,
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, KeyError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="The requested item no longer exists.",
            suggestion="Refresh the list; it may have been deleted by another member.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Ask the category owner to share it with you.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, (ValidationError, IndexError)):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Check the value and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ShareCodeCollisionError):
        return ErrorResponse(
            code=ErrorCode.ERR_SHARE_CODE_EXHAUSTED,
            message="Could not generate a share code.",
            suggestion="Please try creating the shared category again.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, PartialFailureError):
        return ErrorResponse(
            code=ErrorCode.ERR_PARTIAL_FAILURE,
            message="Some changes could not be saved.",
            suggestion="Repeat the action; it is safe to retry.",
            severity=ErrorSeverity.HIGH,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
