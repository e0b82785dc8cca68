from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from jsonapi_atomic.config import Settings


class ReturnPolicy(str, Enum):
    """When operation results are echoed back in the response."""
    NONE = "none"
    AUTO = "auto"
    ALWAYS = "always"


class AtomicConfig(BaseModel):
    """Deployment-wide settings of the atomic operations endpoint."""
    model_config = ConfigDict(frozen=True)

    require_ext_header: bool = True
    max_operations: int = Field(default=100, ge=1)
    return_policy: ReturnPolicy = ReturnPolicy.AUTO
    allow_href: bool = True
    route_prefix: str = "/api"
    results_apply_fieldsets: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "AtomicConfig":
        return cls(
            require_ext_header=settings.ATOMIC_REQUIRE_EXT_HEADER,
            max_operations=settings.ATOMIC_MAX_OPERATIONS,
            return_policy=ReturnPolicy(settings.ATOMIC_RETURN_POLICY),
            allow_href=settings.ATOMIC_ALLOW_HREF,
            route_prefix=settings.API_PREFIX,
            results_apply_fieldsets=settings.ATOMIC_RESULTS_APPLY_FIELDSETS,
        )
