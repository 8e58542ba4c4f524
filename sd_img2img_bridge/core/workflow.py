"""Generation workflow: one img2img round-trip driven by the event loop.

The workflow moves through

    idle -> preparing -> submitted -> awaiting_completion -> decoding -> done

and falls back to ``aborted`` from any stage that fails. While the request is
outstanding it suspends with ``asyncio.sleep(poll_interval)`` so the host
scheduler keeps running other nodes. Failures are logged and contained: the
node keeps its previous outputs and the graph carries on.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol

from ..image import Extent
from ..settings import BridgeSettings, SeedResetPolicy
from .codec import Img2ImgResponse, decode_image, decode_info, decode_response, encode_request
from .errors import PayloadError, WorkflowBusyError
from .ports import InputSnapshot, OutputStore, SeedObserver
from .request_builder import BuildResult, RequestBuilder
from .seed import UNSET_SEED
from .transport import PendingResponse, TransportClient, basic_auth_header

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    idle = "idle"
    preparing = "preparing"
    submitted = "submitted"
    awaiting_completion = "awaiting_completion"
    decoding = "decoding"
    done = "done"
    aborted = "aborted"


class ProgressReporter(Protocol):
    def update(self, fraction: float) -> None: ...

    def clear(self) -> None: ...


class GenerationWorkflow:
    def __init__(
        self,
        settings: BridgeSettings,
        builder: RequestBuilder,
        transport: TransportClient,
        outputs: OutputStore,
        progress: Optional[ProgressReporter] = None,
        seed: int = UNSET_SEED,
    ):
        self.settings = settings
        self.builder = builder
        self.transport = transport
        self.outputs = outputs
        self.progress = progress
        self.seed = seed
        self.state = WorkflowState.idle
        self.seed_observers: list[SeedObserver] = []
        self._in_flight = False
        self._pending: Optional[PendingResponse] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def cancel(self) -> bool:
        """Cancel the outstanding request. Returns False if nothing was in flight."""
        if self._pending is None or self._pending.done():
            return False
        logger.info("Cancelling img2img request")
        return self._pending.cancel()

    async def run(self, snapshot: InputSnapshot, extent: Extent) -> WorkflowState:
        if self._in_flight:
            raise WorkflowBusyError("A generation is already in flight for this node")
        if snapshot.image is None:
            logger.debug("No source image bound, nothing to generate")
            self.state = WorkflowState.idle
            return self.state

        self._in_flight = True
        try:
            self.state = await self._run(snapshot, extent)
            return self.state
        except asyncio.CancelledError:
            if self._pending is not None:
                self._pending.cancel()
            self.state = WorkflowState.aborted
            raise
        except Exception as e:
            if self._pending is not None:
                self._pending.cancel()
            logger.exception(f"img2img generation failed: {e}")
            self.state = WorkflowState.aborted
            return self.state
        finally:
            self._pending = None
            self._in_flight = False
            self._clear_progress()

    async def _run(self, snapshot: InputSnapshot, extent: Extent) -> WorkflowState:
        self.state = WorkflowState.preparing
        try:
            result = self.builder.build(snapshot, extent, self.seed)
            body = encode_request(result.request)
            auth = basic_auth_header(self.settings)
        except Exception as e:
            logger.exception(f"Failed to build img2img request: {e}")
            return WorkflowState.aborted

        if result.seed_drawn:
            self.seed = result.seed

        self.state = WorkflowState.submitted
        pending = self.transport.submit(self.settings.img2img_url, body, auth)
        if pending is None:
            return WorkflowState.aborted
        self._pending = pending

        self.state = WorkflowState.awaiting_completion
        await self._wait(pending, auth)

        self.state = WorkflowState.decoding
        if pending.cancelled:
            logger.info("img2img request was cancelled")
            return WorkflowState.aborted
        if pending.error is not None:
            logger.error(f"img2img request failed: {pending.error}")
            return WorkflowState.aborted
        return self._decode(pending.text or "", extent, result)

    async def _wait(self, pending: PendingResponse, auth: Optional[str]):
        while not pending.done():
            await asyncio.sleep(self.settings.poll_interval)
            if self.settings.report_progress and self.progress and not pending.done():
                await self._report_progress(auth)

    async def _report_progress(self, auth: Optional[str]):
        try:
            fraction = await self.transport.fetch_progress(auth)
            self.progress.update(fraction)
        except Exception as e:
            logger.debug(f"Progress unavailable: {e}")

    def _decode(self, text: str, extent: Extent, result: BuildResult) -> WorkflowState:
        try:
            response: Img2ImgResponse = decode_response(text)
        except PayloadError as e:
            logger.error(f"Could not read img2img response: {e}")
            return WorkflowState.aborted

        if not response.images:
            logger.error(
                "No image was returned by the server. "
                "Verify that the server is correctly set up."
            )
            self._clear_progress()
            return WorkflowState.aborted

        try:
            image = decode_image(response.images[0], extent)
        except PayloadError as e:
            logger.error(f"Could not decode result image: {e}")
            return WorkflowState.aborted

        out_seed = None
        if response.info:
            try:
                out_seed = decode_info(response.info).seed
            except PayloadError as e:
                logger.error(f"Could not read generation info, seed not updated: {e}")

        self.outputs.commit(image=image, seed=out_seed)
        if out_seed is not None:
            if self._should_reset_seed(result):
                self.seed = UNSET_SEED
            self._notify_seed(self.seed, out_seed)

        logger.info(f"img2img generation finished ({image.extent}, seed {self.outputs.seed})")
        return WorkflowState.done

    def _should_reset_seed(self, result: BuildResult) -> bool:
        if self.settings.seed_reset_policy is SeedResetPolicy.always:
            return True
        return result.seed_drawn

    def _notify_seed(self, local_seed: int, out_seed: int):
        for observer in list(self.seed_observers):
            try:
                observer(local_seed, out_seed)
            except Exception as e:
                logger.error(f"Seed observer failed: {e}")

    def _clear_progress(self):
        if self.progress is None:
            return
        try:
            self.progress.clear()
        except Exception as e:
            logger.debug(f"Could not clear progress: {e}")
