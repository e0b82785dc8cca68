"""
Content negotiation for the atomic operations extension.

Media type policies are resolved per request from the configured channels
(first matching channel wins, otherwise the default policy applies) and the
guard checks Content-Type and Accept against the resolved policy before the
request body is read.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Tuple

from fastapi import Request

from jsonapi_atomic.config import MediaTypeChannel, MediaTypeSettings
from jsonapi_atomic.core import media_types
from jsonapi_atomic.core.exceptions import NotAcceptableError, UnsupportedMediaTypeError


logger = logging.getLogger(__name__)

MEDIA_CHANNEL_ATTRIBUTE = "media_channel"


@dataclass(frozen=True)
class MediaTypePolicy:
    """Allowed request media types and negotiable response media types."""
    allowed: Tuple[str, ...]
    negotiable: Tuple[str, ...]

    @property
    def allows_any(self) -> bool:
        return "*" in self.allowed

    def allows(self, content_type: str) -> bool:
        if self.allows_any:
            return True
        base, _ = media_types.parse_media_type(content_type)
        return any(media_types.parse_media_type(allowed)[0] == base for allowed in self.allowed)

    def negotiates(self, accept_entry: str) -> bool:
        """An Accept entry matches a negotiable type that declares the atomic extension."""
        if not media_types.declares_extension(accept_entry):
            return False
        base, _ = media_types.parse_media_type(accept_entry)
        for candidate in self.negotiable:
            if media_types.parse_media_type(candidate)[0] == base and media_types.declares_extension(candidate):
                return True
        return False


@dataclass(frozen=True)
class ChannelScope:
    path_prefix: Optional[Pattern[str]] = None
    route_name: Optional[Pattern[str]] = None
    attribute: Optional[Pattern[str]] = None

    @property
    def is_global(self) -> bool:
        return self.path_prefix is None and self.route_name is None and self.attribute is None


def _compile(pattern: Optional[str]) -> Optional[Pattern[str]]:
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f'Invalid regular expression "{pattern}": {exc}') from exc


def get_route_name(request: Request) -> Optional[str]:
    route = request.scope.get("route")
    return getattr(route, "name", None)


def get_channel(request: Request) -> Optional[str]:
    return getattr(request.state, MEDIA_CHANNEL_ATTRIBUTE, None)


def media_channel(name: str) -> Callable[[Request], None]:
    """Route dependency tagging requests with a media type channel name."""
    def set_channel(request: Request) -> None:
        setattr(request.state, MEDIA_CHANNEL_ATTRIBUTE, name)
    return set_channel


class ChannelScopeMatcher:
    """Match a request against a channel scope. Every configured pattern must match."""

    def matches(self, request: Request, scope: ChannelScope) -> bool:
        if scope.is_global:
            return True

        if scope.path_prefix is not None:
            if not scope.path_prefix.search(request.url.path):
                return False

        if scope.route_name is not None:
            route_name = get_route_name(request)
            if not route_name or not scope.route_name.search(route_name):
                return False

        if scope.attribute is not None:
            channel = get_channel(request)
            if not isinstance(channel, str) or not channel:
                return False
            if not scope.attribute.search(channel):
                return False

        return True


class MediaTypePolicyProvider:
    """Resolve the media type policy for a request from configuration."""

    def __init__(self, config: MediaTypeSettings, matcher: Optional[ChannelScopeMatcher] = None):
        self.matcher = matcher or ChannelScopeMatcher()
        self.default_policy = self._build_policy(config.default)
        self.channels: List[Tuple[ChannelScope, MediaTypePolicy]] = [
            (self._build_scope(channel), self._build_policy(channel))
            for channel in config.channels
        ]

    def get_policy(self, request: Request) -> MediaTypePolicy:
        for scope, policy in self.channels:
            if self.matcher.matches(request, scope):
                return policy
        return self.default_policy

    @staticmethod
    def _build_scope(channel: MediaTypeChannel) -> ChannelScope:
        return ChannelScope(
            path_prefix=_compile(channel.scope.path_prefix),
            route_name=_compile(channel.scope.route_name),
            attribute=_compile(channel.scope.attribute),
        )

    @staticmethod
    def _build_policy(channel: MediaTypeChannel) -> MediaTypePolicy:
        allowed = [media_types.normalize(value) for value in channel.request.allowed or ["*"]]
        default = media_types.normalize(channel.response.default)
        negotiable = [media_types.normalize(value) for value in channel.response.negotiable]
        if default not in negotiable:
            negotiable.insert(0, default)
        return MediaTypePolicy(
            allowed=tuple(allowed),
            negotiable=tuple(negotiable),
        )


class MediaTypeGuard:
    """Gate access to the atomic extension on Content-Type and Accept."""

    def __init__(self, policies: MediaTypePolicyProvider, require_ext_header: bool = True):
        self.policies = policies
        self.require_ext_header = require_ext_header

    def check(self, request: Request) -> MediaTypePolicy:
        policy = self.policies.get_policy(request)
        self.check_content_type(request.headers.get("content-type"), policy)
        self.check_accept(request.headers.get("accept"), policy)
        return policy

    def check_content_type(self, content_type: Optional[str], policy: MediaTypePolicy) -> None:
        if self.require_ext_header:
            if not content_type or not media_types.declares_extension(content_type):
                logger.warning("Rejected atomic request with Content-Type %r", content_type)
                raise UnsupportedMediaTypeError(
                    content_type,
                    "Atomic operations require the JSON:API media type with the atomic extension.",
                )

        if content_type and not policy.allows(content_type):
            logger.warning("Content-Type %r is not allowed by the media type policy", content_type)
            raise UnsupportedMediaTypeError(
                content_type,
                f"Allowed request media types: {', '.join(policy.allowed)}.",
            )

    def check_accept(self, accept: Optional[str], policy: MediaTypePolicy) -> None:
        if not accept:
            return

        for entry in media_types.split_header(accept):
            base, params = media_types.parse_media_type(entry)
            if media_types.quality(params) == 0:
                continue
            if base == media_types.ANY:
                return
            if base == media_types.JSON_API and media_types.declares_extension(entry):
                return
            if policy.negotiates(entry):
                return

        logger.warning("Rejected atomic request with Accept %r", accept)
        raise NotAcceptableError(
            accept,
            "The requested media type does not include the JSON:API atomic extension.",
        )
