from typing import Any, Dict, Optional


class RatingError(Exception):
    """Base class for classified failures of rating operations.

    Every failure leaving a rating operation is one of the subclasses below,
    each carrying the HTTP status and the error kind reported to the caller.
    """

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_response(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "message": self.message,
            "error": self.kind,
        }
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(RatingError):
    status_code = 400
    kind = "validation_error"


class NotFoundError(RatingError):
    status_code = 404
    kind = "not_found"


class ForbiddenError(RatingError):
    status_code = 403
    kind = "forbidden"


class ConflictError(RatingError):
    status_code = 409
    kind = "conflict"


class InternalError(RatingError):
    status_code = 500
    kind = "internal_error"
