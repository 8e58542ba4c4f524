"""The img2img graph node."""
import logging
from typing import Any, Callable, Optional

from ..image import Extent, Image
from ..settings import BridgeSettings, Img2ImgOptions
from .errors import WorkflowBusyError
from .ports import ControlNetData, InputSnapshot, NodePorts, OutputStore, Prompt, SeedObserver
from .request_builder import RequestBuilder
from .seed import SeedSource
from .transport import TransportClient
from .workflow import GenerationWorkflow, ProgressReporter, WorkflowState

logger = logging.getLogger(__name__)


class Img2ImgNode:
    """Image-to-image node for a Stable Diffusion WebUI server.

    The host graph binds inputs through ``ports``, awaits ``execute()`` once
    per graph execution and reads results with ``request_value()``. Unbound
    inputs fall back to the fields stored on the node.
    """

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        options: Optional[Img2ImgOptions] = None,
        transport: Optional[TransportClient] = None,
        seed_source: Optional[SeedSource] = None,
        progress: Optional[ProgressReporter] = None,
        view_size: Optional[Callable[[], Extent]] = None,
    ):
        self.settings = settings or BridgeSettings()
        self.options = options or Img2ImgOptions()
        self.ports = NodePorts()
        self.outputs = OutputStore()
        self.transport = transport or TransportClient(self.settings)
        builder = RequestBuilder(self.options, seed_source, self.settings.image_format)
        self.workflow = GenerationWorkflow(
            self.settings,
            builder,
            self.transport,
            self.outputs,
            progress=progress,
            seed=self.options.seed,
        )
        self._view_size = view_size

        self.input_image: Optional[Image] = None
        self.mask_image: Optional[Image] = None
        self.control_net: Optional[ControlNetData] = None
        self.prompt = Prompt()
        self.steps = self.options.steps
        self.cfg_scale = self.options.cfg_scale
        self.denoising_strength = self.options.denoising_strength
        self.last_inputs: Optional[InputSnapshot] = None

    @property
    def seed(self) -> int:
        return self.workflow.seed

    @seed.setter
    def seed(self, value: int):
        self.workflow.seed = value

    @property
    def state(self) -> WorkflowState:
        return self.workflow.state

    @property
    def is_generating(self) -> bool:
        return self.workflow.in_flight

    def on_seed_changed(self, observer: SeedObserver) -> None:
        self.workflow.seed_observers.append(observer)

    def view_size(self) -> Extent:
        if self._view_size is not None:
            return self._view_size()
        return self.options.view_size

    def stored_inputs(self) -> InputSnapshot:
        return InputSnapshot(
            image=self.input_image,
            control_net=self.control_net,
            mask=self.mask_image,
            prompt=self.prompt,
            steps=self.steps,
            cfg_scale=self.cfg_scale,
            denoising_strength=self.denoising_strength,
        )

    async def execute(self) -> WorkflowState:
        """Run one graph execution of this node."""
        if self.workflow.in_flight:
            logger.warning("Generation already in flight, execution rejected")
            return WorkflowState.idle

        try:
            snapshot = self.ports.pull(self.stored_inputs())
            extent = self.view_size()
        except Exception as e:
            logger.exception(f"Could not read node inputs: {e}")
            self.workflow.state = WorkflowState.aborted
            return self.workflow.state
        self.last_inputs = snapshot
        logger.debug(f"Final width: {extent.width}, height: {extent.height}")

        try:
            return await self.workflow.run(snapshot, extent)
        except WorkflowBusyError as e:
            logger.warning(f"Execution rejected: {e}")
            return WorkflowState.idle

    def request_value(self, name: str) -> Any:
        return self.outputs.request_value(name)

    def cancel(self) -> bool:
        return self.workflow.cancel()

    async def close(self):
        """Cancel any outstanding request and release the HTTP session."""
        self.cancel()
        await self.transport.close()
