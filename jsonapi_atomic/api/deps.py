from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.atomic.config import AtomicConfig
from jsonapi_atomic.atomic.handlers import HandlerRegistry
from jsonapi_atomic.atomic.processor import AtomicProcessor, build_processor
from jsonapi_atomic.config import settings
from jsonapi_atomic.core.negotiation import MediaTypeGuard, MediaTypePolicyProvider
from jsonapi_atomic.database import AsyncSessionLocal
from jsonapi_atomic.resources.registry import ResourceRegistry, build_registry
from jsonapi_atomic.resources.store import build_handler_registry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_atomic_config() -> AtomicConfig:
    """Atomic extension options, overridable per app for tests."""
    return AtomicConfig.from_settings(settings)


@lru_cache
def get_resource_registry() -> ResourceRegistry:
    return build_registry()


@lru_cache
def get_handler_registry() -> HandlerRegistry:
    return build_handler_registry(get_resource_registry())


@lru_cache
def get_policy_provider() -> MediaTypePolicyProvider:
    return MediaTypePolicyProvider(settings.MEDIA_TYPES)


def get_media_type_guard(
    config: AtomicConfig = Depends(get_atomic_config),
    policies: MediaTypePolicyProvider = Depends(get_policy_provider),
) -> MediaTypeGuard:
    return MediaTypeGuard(policies, require_ext_header=config.require_ext_header)


def get_atomic_processor(
    config: AtomicConfig = Depends(get_atomic_config),
    registry: ResourceRegistry = Depends(get_resource_registry),
    handlers: HandlerRegistry = Depends(get_handler_registry),
) -> AtomicProcessor:
    return build_processor(config, registry, handlers)
