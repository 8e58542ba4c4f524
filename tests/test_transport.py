"""Tests for the aiohttp transport."""
import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from sd_img2img_bridge.core.errors import NetworkError
from sd_img2img_bridge.core.transport import TransportClient, basic_auth_header
from sd_img2img_bridge.settings import BridgeSettings


def mock_session(status=200, text="{}", reason="OK"):
    response = MagicMock()
    response.status = status
    response.reason = reason
    response.text = AsyncMock(return_value=text)

    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    session.closed = False
    session.post = MagicMock(return_value=request_ctx)
    session.get = MagicMock(return_value=request_ctx)
    session.close = AsyncMock()
    return session


async def wait_done(pending):
    while not pending.done():
        await asyncio.sleep(0)


def test_basic_auth_header():
    settings = BridgeSettings(use_auth=True, username="user", password="päss")
    expected = base64.b64encode("user:päss".encode("utf-8")).decode("ascii")
    assert basic_auth_header(settings) == f"Basic {expected}"


@pytest.mark.parametrize(
    "use_auth, username, password",
    [(False, "user", "pass"), (True, "", "pass"), (True, "user", "")],
)
def test_basic_auth_header_disabled(use_auth, username, password):
    settings = BridgeSettings(use_auth=use_auth, username=username, password=password)
    assert basic_auth_header(settings) is None


@pytest.mark.asyncio
async def test_submit_posts_json_body():
    """The body is sent as JSON with the optional auth header attached."""
    client = TransportClient(BridgeSettings())
    client._session = mock_session(text='{"images": []}')

    pending = client.submit("http://sd.local:7860/sdapi/v1/img2img", '{"a": 1}', "Basic abc")
    assert pending is not None
    await wait_done(pending)

    assert pending.error is None
    assert pending.text == '{"images": []}'
    call = client._session.post.call_args
    assert call.args[0] == "http://sd.local:7860/sdapi/v1/img2img"
    assert call.kwargs["data"] == b'{"a": 1}'
    assert call.kwargs["headers"] == {
        "Content-Type": "application/json",
        "Authorization": "Basic abc",
    }


@pytest.mark.asyncio
async def test_submit_without_auth_header():
    client = TransportClient(BridgeSettings())
    client._session = mock_session()

    pending = client.submit("http://sd.local/sdapi/v1/img2img", "{}")
    await wait_done(pending)

    headers = client._session.post.call_args.kwargs["headers"]
    assert "Authorization" not in headers


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["not a url", "ftp://sd.local/x", "http:///nohost"])
async def test_submit_malformed_url_returns_none(url):
    """A request that cannot be built is reported as nothing in flight."""
    client = TransportClient(BridgeSettings())
    client._session = mock_session()

    assert client.submit(url, "{}") is None
    client._session.post.assert_not_called()


@pytest.mark.asyncio
async def test_connection_error_is_captured():
    """Connection failures end up on the handle instead of being raised."""
    client = TransportClient(BridgeSettings())
    client._session = mock_session()
    client._session.post.side_effect = aiohttp.ClientConnectionError("refused")

    pending = client.submit("http://sd.local/sdapi/v1/img2img", "{}")
    await wait_done(pending)

    assert isinstance(pending.error, NetworkError)
    assert "refused" in str(pending.error)
    assert pending.text is None


@pytest.mark.asyncio
async def test_http_error_status_is_captured():
    client = TransportClient(BridgeSettings())
    client._session = mock_session(
        status=500, text='{"detail": "CUDA out of memory"}', reason="Internal Server Error"
    )

    pending = client.submit("http://sd.local/sdapi/v1/img2img", "{}")
    await wait_done(pending)

    error = pending.error
    assert error.status == 500
    assert "CUDA out of memory" in error.message
    assert error.data == {"detail": "CUDA out of memory"}


@pytest.mark.asyncio
async def test_cancel_pending_request():
    client = TransportClient(BridgeSettings())

    async def never_finishes(*args, **kwargs):
        await asyncio.sleep(3600)

    client._post = never_finishes
    pending = client.submit("http://sd.local/sdapi/v1/img2img", "{}")
    await asyncio.sleep(0)
    assert not pending.done()

    assert pending.cancel()
    await wait_done(pending)
    assert pending.cancelled
    assert pending.error is None
    assert pending.text is None


@pytest.mark.asyncio
async def test_fetch_progress():
    client = TransportClient(BridgeSettings(server_url="http://sd.local/"))
    client._session = mock_session(text='{"progress": 0.25, "eta_relative": 3.0}')

    assert await client.fetch_progress() == 0.25
    assert client._session.get.call_args.args[0] == "http://sd.local/sdapi/v1/progress"


@pytest.mark.asyncio
async def test_fetch_progress_invalid_payload():
    client = TransportClient(BridgeSettings())
    client._session = mock_session(text="[]")

    with pytest.raises(NetworkError):
        await client.fetch_progress()


@pytest.mark.asyncio
async def test_close_releases_session():
    client = TransportClient(BridgeSettings())
    session = mock_session()
    client._session = session

    await client.close()
    session.close.assert_awaited_once()
    assert client._session is None


@pytest.mark.asyncio
async def test_fetch_progress_timeout_is_a_network_error():
    client = TransportClient(BridgeSettings())
    client._session = mock_session()
    client._session.get.side_effect = asyncio.TimeoutError()

    with pytest.raises(NetworkError) as exc_info:
        await client.fetch_progress()
    assert "timed out" in exc_info.value.message
