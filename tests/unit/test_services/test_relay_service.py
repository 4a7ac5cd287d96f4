import pytest
from starlette.requests import Request

from src.errors import ClientInputError, DownstreamProtocolError
from src.services.relay import service as relay


@pytest.mark.unit
def test_parse_caption_request_valid():
    """Test a well-formed body binds to CaptionRequest"""
    caption_request = relay.parse_caption_request(
        b'{"image_base64": "aGVsbG8=", "extra": true}', "req-svc00001"
    )

    assert caption_request.image_base64 == "aGVsbG8="


@pytest.mark.unit
@pytest.mark.parametrize("body", [b"{", b"null", b"{}", b'{"image_base64": []}'])
def test_parse_caption_request_invalid_format(body):
    """Test malformed or mis-shaped bodies raise the invalid-format error"""
    with pytest.raises(ClientInputError) as exc_info:
        relay.parse_caption_request(body, "req-svc00002")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid request format"


@pytest.mark.unit
def test_parse_caption_request_empty_image():
    """Test an empty image raises the required-field error"""
    with pytest.raises(ClientInputError) as exc_info:
        relay.parse_caption_request(b'{"image_base64": ""}', "req-svc00003")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "image_base64 is required"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_relay_caption_success(stub_caption_client):
    """Test the caption is relayed unchanged"""
    stub_caption_client.caption = "two people riding bicycles"

    result = await relay.relay_caption(
        b'{"image_base64": "aGVsbG8="}', stub_caption_client, "req-svc00004"
    )

    assert result.caption == "two people riding bicycles"
    assert stub_caption_client.calls == [("aGVsbG8=", "req-svc00004")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_relay_caption_fallback(stub_caption_client):
    """Test an empty caption is replaced with the fallback"""
    stub_caption_client.caption = ""

    result = await relay.relay_caption(
        b'{"image_base64": "aGVsbG8="}', stub_caption_client, "req-svc00005"
    )

    assert result.caption == relay.FALLBACK_CAPTION


@pytest.mark.unit
@pytest.mark.asyncio
async def test_relay_caption_validates_before_calling(stub_caption_client):
    """Test no downstream call is made for an invalid body"""
    with pytest.raises(ClientInputError):
        await relay.relay_caption(
            b'{"image_base64": ""}', stub_caption_client, "req-svc00006"
        )

    assert stub_caption_client.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_relay_caption_propagates_downstream_error(stub_caption_client):
    """Test downstream errors propagate unchanged to the HTTP boundary"""
    error = DownstreamProtocolError("returned 502", status_code_received=502)
    stub_caption_client.error = error

    with pytest.raises(DownstreamProtocolError) as exc_info:
        await relay.relay_caption(
            b'{"image_base64": "aGVsbG8="}', stub_caption_client, "req-svc00007"
        )

    assert exc_info.value is error
    assert len(stub_caption_client.calls) == 1


def _request_with_messages(messages: list[dict], headers=None) -> Request:
    """Build a POST /process request whose body arrives as the given ASGI messages."""
    pending = list(messages)

    async def receive():
        return pending.pop(0)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/process",
        "headers": headers or [],
    }
    return Request(scope, receive)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_body_limited_joins_chunks():
    request = _request_with_messages(
        [
            {"type": "http.request", "body": b'{"image_base64": ', "more_body": True},
            {"type": "http.request", "body": b'"aGVsbG8="}', "more_body": False},
        ]
    )

    body = await relay.read_body_limited(request, 64, "req-svc00008")

    assert body == b'{"image_base64": "aGVsbG8="}'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_body_limited_stops_at_cap():
    """Test a body without Content-Length is cut off once it crosses the cap"""
    request = _request_with_messages(
        [
            {"type": "http.request", "body": b"A" * 40, "more_body": True},
            {"type": "http.request", "body": b"A" * 40, "more_body": True},
            {"type": "http.request", "body": b"A" * 40, "more_body": False},
        ]
    )

    with pytest.raises(ClientInputError) as exc_info:
        await relay.read_body_limited(request, 64, "req-svc00009")

    assert exc_info.value.message == "Invalid request format"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_body_limited_client_disconnect():
    """Test a client that disconnects mid-body gets an input error, not a 500"""
    request = _request_with_messages(
        [
            {"type": "http.request", "body": b'{"image_', "more_body": True},
            {"type": "http.disconnect"},
        ]
    )

    with pytest.raises(ClientInputError) as exc_info:
        await relay.read_body_limited(request, 1024, "req-svc00010")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid request format"
