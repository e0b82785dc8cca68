from fastapi import APIRouter

from jsonapi_atomic.api.v1 import operations
from jsonapi_atomic.config import settings

router = APIRouter()

# Atomic operations extension
if settings.ATOMIC_ENABLED:
    router.include_router(
        operations.router,
        prefix=settings.ATOMIC_ENDPOINT,
        tags=["Atomic Operations"],
    )
