"""
JSON:API Exception Classes

Based on: https://jsonapi.org/format/#errors
"""
from typing import Any, Dict, List, Optional


class ErrorObject:
    """One entry of a JSON:API error document.

    {
        "status": "400",
        "code": "validation_error",
        "title": "...",
        "detail": "...",
        "source": {"pointer": "/atomic:operations/0/ref/lid"}
    }
    """

    def __init__(
        self,
        detail: str,
        pointer: Optional[str] = None,
        title: Optional[str] = None,
    ):
        self.detail = detail
        self.pointer = pointer
        self.title = title

    def to_dict(self, status_code: int, code: str, title: str) -> Dict[str, Any]:
        error: Dict[str, Any] = {
            "status": str(status_code),
            "code": code,
            "title": self.title or title,
            "detail": self.detail,
        }
        if self.pointer is not None:
            error["source"] = {"pointer": self.pointer}
        return error


class JsonApiException(Exception):
    """Base exception for JSON:API errors.

    Carries one or more error objects rendered as:
    {
        "errors": [
            {"status": "...", "code": "...", "title": "...", "detail": "...", "source": {...}}
        ]
    }
    """

    status_code = 500
    code = "server_error"
    title = "Server Error"

    def __init__(
        self,
        detail: str,
        pointer: Optional[str] = None,
        errors: Optional[List[ErrorObject]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.detail = detail
        self.errors = errors or [ErrorObject(detail, pointer)]
        self.headers = headers or {}
        super().__init__(detail)

    @property
    def pointer(self) -> Optional[str]:
        return self.errors[0].pointer

    def to_document(self) -> Dict[str, Any]:
        return {
            "errors": [
                error.to_dict(self.status_code, self.code, self.title)
                for error in self.errors
            ]
        }


class UnsupportedMediaTypeError(JsonApiException):
    """415 - Content-Type does not satisfy the media type policy."""

    status_code = 415
    code = "unsupported_media_type"
    title = "Unsupported Media Type"

    def __init__(self, content_type: Optional[str], detail: str):
        self.content_type = content_type
        super().__init__(f"{detail} Received: {content_type or '(none)'}.")


class NotAcceptableError(JsonApiException):
    """406 - No acceptable response media type."""

    status_code = 406
    code = "not_acceptable"
    title = "Not Acceptable"

    def __init__(self, accept: str, detail: str):
        self.accept = accept
        super().__init__(f"{detail} Received: {accept}.")


class InvalidRequestError(JsonApiException):
    """400 - The request document is malformed."""

    status_code = 400
    code = "invalid_request"
    title = "Invalid Request"


class ValidationError(JsonApiException):
    """400 - The operations are well formed but violate a batch rule."""

    status_code = 400
    code = "validation_error"
    title = "Validation Error"


class ExecutionFailure(JsonApiException):
    """An operation was rejected while the batch was executing.

    Raised by resource collaborators; the dispatcher attaches the pointer of
    the operation that failed before the error leaves the transaction.
    """

    status_code = 500
    code = "execution_failure"
    title = "Operation Failed"

    def for_operation(self, pointer: str) -> "ExecutionFailure":
        for error in self.errors:
            error.pointer = pointer
        return self


class NotFoundError(ExecutionFailure):
    """404 - Resource not found error."""

    status_code = 404
    code = "not_found"
    title = "Not Found"

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f'Resource "{resource_type}" with id "{resource_id}" does not exist.')


class ConflictError(ExecutionFailure):
    """409 - Conflict with the current state of the resource."""

    status_code = 409
    code = "conflict"
    title = "Conflict"


class UnsupportedOperationError(ExecutionFailure):
    """403 - The server does not support this operation for the resource type."""

    status_code = 403
    code = "unsupported_operation"
    title = "Forbidden"


class InvalidValueError(ExecutionFailure):
    """400 - A value in the operation cannot be stored."""

    status_code = 400
    code = "invalid_value"
    title = "Invalid Value"
