import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.api.deps import get_atomic_processor, get_db, get_media_type_guard
from jsonapi_atomic.atomic.processor import AtomicProcessor
from jsonapi_atomic.core.media_types import JSON_API_ATOMIC
from jsonapi_atomic.core.negotiation import MediaTypeGuard, media_channel
from jsonapi_atomic.schemas.common import AtomicResultsDocument, ErrorDocument
from jsonapi_atomic.utils.response import atomic_response


logger = logging.getLogger(__name__)

ROUTE_NAME = "jsonapi.atomic"

router = APIRouter()


@router.post(
    "",
    name=ROUTE_NAME,
    dependencies=[Depends(media_channel("atomic"))],
    response_model=None,
    responses={
        200: {"model": AtomicResultsDocument, "content": {JSON_API_ATOMIC: {}}},
        204: {"description": "Every operation succeeded and no results are returned"},
        400: {"model": ErrorDocument},
        404: {"model": ErrorDocument},
        406: {"model": ErrorDocument},
        409: {"model": ErrorDocument},
        415: {"model": ErrorDocument},
    },
)
async def execute_operations(
    request: Request,
    db: AsyncSession = Depends(get_db),
    guard: MediaTypeGuard = Depends(get_media_type_guard),
    processor: AtomicProcessor = Depends(get_atomic_processor),
) -> Response:
    """
    Execute a batch of JSON:API operations atomically.

    The request document carries an ordered `atomic:operations` array.
    Operations run in order inside one transaction: either every operation
    is applied or none is. Resources created earlier in the batch can be
    referenced by later operations through their local identifier (`lid`).
    """
    guard.check(request)

    body = await request.body()
    result_set = await processor.process(db, body, request.query_params)
    logger.debug("Returning %d atomic results", len(result_set.results))
    return atomic_response(result_set)
