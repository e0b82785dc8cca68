from types import SimpleNamespace

import pytest
from starlette.requests import Request

from jsonapi_atomic.api.deps import get_atomic_config
from jsonapi_atomic.atomic.config import AtomicConfig
from jsonapi_atomic.config import (
    ChannelScope,
    MediaTypeChannel,
    MediaTypeSettings,
    RequestMediaTypes,
    ResponseMediaTypes,
)
from jsonapi_atomic.core.exceptions import NotAcceptableError, UnsupportedMediaTypeError
from jsonapi_atomic.core.media_types import JSON_API, JSON_API_ATOMIC, declares_extension, split_header
from jsonapi_atomic.core.negotiation import MediaTypeGuard, MediaTypePolicyProvider
from jsonapi_atomic.main import app


CUSTOM_ATOMIC = 'application/x-custom+json; ext="https://jsonapi.org/ext/atomic"'

OPERATION = {"op": "add", "data": {"type": "tags", "attributes": {"name": "negotiated"}}}


def make_request(path="/api/operations", route_name=None, channel=None, headers=None):
    scope = {
        "type": "http",
        "method": "POST",
        "path": path,
        "query_string": b"",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "state": {},
    }
    if route_name is not None:
        scope["route"] = SimpleNamespace(name=route_name)
    if channel is not None:
        scope["state"]["media_channel"] = channel
    return Request(scope)


def make_guard(channels=None, require_ext_header=True):
    provider = MediaTypePolicyProvider(MediaTypeSettings(channels=channels or []))
    return MediaTypeGuard(provider, require_ext_header=require_ext_header)


def test_split_header_respects_quotes():
    """Test commas inside quoted parameters do not split entries."""
    header = 'application/vnd.api+json; ext="https://a.example, https://b.example", */*'
    assert split_header(header) == [
        'application/vnd.api+json; ext="https://a.example, https://b.example"',
        "*/*",
    ]


def test_declares_extension_among_several():
    """Test the ext parameter is a space-separated list."""
    assert declares_extension('application/vnd.api+json; ext="https://jsonapi.org/ext/atomic https://x.example"')
    assert not declares_extension('application/vnd.api+json; ext="https://x.example"')
    assert not declares_extension(JSON_API)


def test_guard_accepts_atomic_request():
    """Test the canonical headers pass."""
    guard = make_guard()
    request = make_request(headers={"content-type": JSON_API_ATOMIC, "accept": JSON_API_ATOMIC})
    policy = guard.check(request)
    assert JSON_API in policy.allowed


def test_guard_requires_extension():
    """Test Content-Type without the atomic extension is rejected."""
    guard = make_guard()
    request = make_request(headers={"content-type": JSON_API})
    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        guard.check(request)
    assert exc_info.value.status_code == 415


def test_guard_missing_content_type():
    """Test a request without Content-Type is rejected."""
    with pytest.raises(UnsupportedMediaTypeError):
        make_guard().check(make_request())


def test_guard_extension_not_required():
    """Test the plain JSON:API media type passes when the extension is optional."""
    guard = make_guard(require_ext_header=False)
    guard.check(make_request(headers={"content-type": JSON_API}))


def test_guard_allow_list_applies_without_extension_requirement():
    """Test the allow-list still applies when the extension is optional."""
    guard = make_guard(require_ext_header=False)
    with pytest.raises(UnsupportedMediaTypeError):
        guard.check(make_request(headers={"content-type": "application/json"}))


def test_guard_allow_list_rejects_other_base_type():
    """Test a different base type declaring the extension is still rejected."""
    guard = make_guard()
    with pytest.raises(UnsupportedMediaTypeError):
        guard.check(make_request(headers={"content-type": 'text/plain; ext="https://jsonapi.org/ext/atomic"'}))


@pytest.mark.parametrize("accept", [
    "*/*",
    JSON_API_ATOMIC,
    f"text/html, {JSON_API_ATOMIC}",
    f"{JSON_API_ATOMIC}; q=0.5",
    "text/html; q=0, */*; q=0.1",
    "",
])
def test_guard_acceptable(accept):
    """Test Accept values that allow an atomic response."""
    guard = make_guard()
    guard.check(make_request(headers={"content-type": JSON_API_ATOMIC, "accept": accept}))


@pytest.mark.parametrize("accept", [
    JSON_API,
    "application/json",
    "text/html, application/xml",
    f"{JSON_API_ATOMIC}; q=0",
    f"{JSON_API_ATOMIC}; q=0.0, application/json",
    "*/*; q=0",
])
def test_guard_not_acceptable(accept):
    """Test Accept values that rule out the atomic media type are rejected."""
    guard = make_guard()
    with pytest.raises(NotAcceptableError) as exc_info:
        guard.check(make_request(headers={"content-type": JSON_API_ATOMIC, "accept": accept}))
    assert exc_info.value.status_code == 406


def test_channel_selected_by_attribute():
    """Test a channel scoped to the request's media channel attribute."""
    channel = MediaTypeChannel(
        scope=ChannelScope(attribute="^atomic$"),
        request=RequestMediaTypes(allowed=["*"]),
        response=ResponseMediaTypes(negotiable=[CUSTOM_ATOMIC]),
    )
    guard = make_guard(channels=[channel])
    headers = {"content-type": 'application/x-custom+json; ext="https://jsonapi.org/ext/atomic"', "accept": CUSTOM_ATOMIC}

    guard.check(make_request(channel="atomic", headers=headers))

    with pytest.raises(UnsupportedMediaTypeError):
        guard.check(make_request(headers=headers))


def test_channel_negotiable_accept():
    """Test negotiable response types of the matched channel satisfy Accept."""
    channel = MediaTypeChannel(
        scope=ChannelScope(route_name=r"^jsonapi\.atomic$"),
        response=ResponseMediaTypes(negotiable=[CUSTOM_ATOMIC]),
    )
    guard = make_guard(channels=[channel])
    headers = {"content-type": JSON_API_ATOMIC, "accept": CUSTOM_ATOMIC}

    guard.check(make_request(route_name="jsonapi.atomic", headers=headers))

    with pytest.raises(NotAcceptableError):
        guard.check(make_request(route_name="other", headers=headers))


def test_first_matching_channel_wins():
    """Test channels are tried in order."""
    provider = MediaTypePolicyProvider(MediaTypeSettings(channels=[
        MediaTypeChannel(
            scope=ChannelScope(path_prefix="^/api/operations"),
            request=RequestMediaTypes(allowed=["application/first+json"]),
        ),
        MediaTypeChannel(
            scope=ChannelScope(path_prefix="^/api"),
            request=RequestMediaTypes(allowed=["application/second+json"]),
        ),
    ]))
    assert provider.get_policy(make_request(path="/api/operations")).allowed == ("application/first+json",)
    assert provider.get_policy(make_request(path="/api/articles")).allowed == ("application/second+json",)
    assert provider.get_policy(make_request(path="/other")).allowed == (JSON_API,)


def test_scope_requires_every_pattern():
    """Test a scope with several patterns matches only when all do."""
    provider = MediaTypePolicyProvider(MediaTypeSettings(channels=[
        MediaTypeChannel(
            scope=ChannelScope(path_prefix="^/api", attribute="^atomic$"),
            request=RequestMediaTypes(allowed=["*"]),
        ),
    ]))
    assert provider.get_policy(make_request(channel="atomic")).allows_any
    assert not provider.get_policy(make_request(channel="bulk")).allows_any
    assert not provider.get_policy(make_request(path="/other", channel="atomic")).allows_any


def test_invalid_scope_pattern():
    """Test an invalid regular expression is reported at configuration time."""
    with pytest.raises(ValueError):
        MediaTypePolicyProvider(MediaTypeSettings(channels=[
            MediaTypeChannel(scope=ChannelScope(path_prefix="(")),
        ]))


@pytest.mark.asyncio
async def test_unsupported_media_type_response(client):
    """Test the endpoint answers 415 with a JSON:API error document."""
    response = await client.post(
        "/api/operations",
        content=b'{"atomic:operations": []}',
        headers={"Content-Type": JSON_API, "Accept": JSON_API_ATOMIC},
    )
    assert response.status_code == 415
    assert response.headers["content-type"].startswith(JSON_API)
    error = response.json()["errors"][0]
    assert error["status"] == "415"
    assert error["code"] == "unsupported_media_type"


@pytest.mark.asyncio
async def test_not_acceptable_response(post_operations):
    """Test the endpoint answers 406 when the client cannot take the atomic media type."""
    response = await post_operations(
        [OPERATION],
        headers={"Content-Type": JSON_API_ATOMIC, "Accept": JSON_API},
    )
    assert response.status_code == 406
    assert response.json()["errors"][0]["code"] == "not_acceptable"


@pytest.mark.asyncio
async def test_zero_quality_accept_refused(post_operations):
    """Test an atomic Accept entry weighted q=0 is a refusal."""
    response = await post_operations(
        [OPERATION],
        headers={"Content-Type": JSON_API_ATOMIC, "Accept": f"{JSON_API_ATOMIC}; q=0"},
    )
    assert response.status_code == 406


@pytest.mark.asyncio
async def test_wildcard_accept(post_operations):
    """Test */* is acceptable."""
    response = await post_operations(
        [OPERATION],
        headers={"Content-Type": JSON_API_ATOMIC, "Accept": "*/*"},
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_optional_extension_header(post_operations):
    """Test the plain JSON:API media type is accepted when the extension is optional."""
    app.dependency_overrides[get_atomic_config] = lambda: AtomicConfig(require_ext_header=False)

    response = await post_operations(
        [OPERATION],
        headers={"Content-Type": JSON_API, "Accept": JSON_API_ATOMIC},
    )
    assert response.status_code == 200
