from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse, Response

from jsonapi_atomic.atomic.results import AtomicResultSet
from jsonapi_atomic.core.exceptions import JsonApiException
from jsonapi_atomic.core.media_types import JSON_API, JSON_API_ATOMIC


class AtomicResponse(JSONResponse):
    """JSON response rendered with the atomic extension media type."""
    media_type = JSON_API_ATOMIC


def atomic_response(result_set: AtomicResultSet) -> Response:
    """204 when every result is empty, otherwise 200 with atomic:results."""
    if result_set.all_empty:
        return Response(status_code=204, media_type=JSON_API_ATOMIC)
    return AtomicResponse(status_code=200, content=result_set.to_document())


def error_response(exc: JsonApiException, media_type: str = JSON_API) -> JSONResponse:
    """Render a JSON:API error document for an exception."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_document(),
        headers=exc.headers or None,
        media_type=media_type,
    )


def server_error_document(detail: Optional[str] = None) -> Dict[str, Any]:
    return {
        "errors": [
            {
                "status": "500",
                "code": "server_error",
                "title": "Server Error",
                "detail": detail or "An unexpected error occurred.",
            }
        ]
    }


def merge_vary(response: Response, value: str) -> None:
    """Add a header name to Vary without dropping what is already there."""
    current = response.headers.get("vary")
    if not current:
        response.headers["Vary"] = value
        return
    names = [name.strip() for name in current.split(",") if name.strip()]
    if value.lower() not in (name.lower() for name in names):
        names.append(value)
        response.headers["Vary"] = ", ".join(names)
