import asyncio

import pytest

from sd_img2img_bridge.core.state import state
from sd_img2img_bridge.core.transport import PendingResponse
from sd_img2img_bridge.image import Extent, Image


class FakeTransport:
    """Stands in for TransportClient; answers every submit with a canned body."""

    def __init__(self, text=None, error=None, delay=0.0, progress=0.5, progress_error=None):
        self.text = text
        self.error = error
        self.delay = delay
        self.progress = progress
        self.progress_error = progress_error
        self.calls = []
        self.progress_calls = 0
        self.closed = False
        self.refuse = False

    def submit(self, url, body, auth_header=None):
        self.calls.append((url, body, auth_header))
        if self.refuse:
            return None

        async def respond():
            await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.text

        return PendingResponse(asyncio.get_running_loop().create_task(respond()), url)

    async def fetch_progress(self, auth_header=None):
        self.progress_calls += 1
        if self.progress_error is not None:
            raise self.progress_error
        return self.progress

    async def close(self):
        self.closed = True


class RecordingProgress:
    def __init__(self):
        self.updates = []
        self.cleared = 0

    def update(self, fraction):
        self.updates.append(fraction)

    def clear(self):
        self.cleared += 1


def fixed_bytes(value: int):
    """Byte source that always yields the given signed int64."""
    return lambda n: value.to_bytes(n, "little", signed=True)


def png_base64(width=1, height=1, fill=(10, 20, 30, 255)) -> str:
    return Image.create(Extent(width, height), fill=fill).to_base64()


@pytest.fixture
def source_image():
    return Image.create(Extent(8, 6), fill=(200, 100, 50, 255))


@pytest.fixture(autouse=True)
def reset_state():
    """Reset global bridge state before each test."""
    state.node = None
    state.execution = None
    yield
    state.node = None
    state.execution = None
