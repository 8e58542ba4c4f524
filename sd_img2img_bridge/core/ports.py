"""Input and output ports of the img2img node."""
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..image import Image

IN_IMAGE = "In Image"
CONTROL_NET = "ControlNet"
MASK = "Mask"
PROMPT = "Prompt"
STEP = "Step"
CFG = "CFG"
DENOISING_STRENGTH = "DenisoStrength"

OUT_IMAGE = "Out Image"
SEED = "Seed"

INPUT_PORTS = (IN_IMAGE, CONTROL_NET, MASK, PROMPT, STEP, CFG, DENOISING_STRENGTH)
OUTPUT_PORTS = (OUT_IMAGE, SEED)


@dataclass(frozen=True)
class Prompt:
    positive: str = ""
    negative: str = ""


@dataclass(frozen=True)
class ControlNetData:
    """Opaque conditioning data handed through from upstream nodes."""
    payload: Any = None


@dataclass(frozen=True)
class InputSnapshot:
    """Input values pulled once at the start of an execution."""
    image: Optional[Image] = None
    control_net: Optional[ControlNetData] = None
    mask: Optional[Image] = None
    prompt: Prompt = Prompt()
    steps: int = 20
    cfg_scale: int = 7
    denoising_strength: float = 0.75


class NodePorts:
    """Input bindings, pulled by port name.

    A binding is either a constant or a zero-argument callable that returns
    the upstream node's current value.
    """

    def __init__(self):
        self._bindings: dict[str, Any] = {}

    def bind(self, name: str, source: Any) -> None:
        if name not in INPUT_PORTS:
            raise KeyError(f"Unknown input port: {name}")
        self._bindings[name] = source

    def unbind(self, name: str) -> None:
        self._bindings.pop(name, None)

    def is_bound(self, name: str) -> bool:
        return name in self._bindings

    def get_input_value(self, name: str, default: Any = None) -> Any:
        if name not in self._bindings:
            return default
        source = self._bindings[name]
        value = source() if callable(source) else source
        return default if value is None else value

    def pull(self, defaults: InputSnapshot) -> InputSnapshot:
        return InputSnapshot(
            image=self.get_input_value(IN_IMAGE, defaults.image),
            control_net=self.get_input_value(CONTROL_NET, defaults.control_net),
            mask=self.get_input_value(MASK, defaults.mask),
            prompt=self.get_input_value(PROMPT, defaults.prompt),
            steps=int(self.get_input_value(STEP, defaults.steps)),
            cfg_scale=int(self.get_input_value(CFG, defaults.cfg_scale)),
            denoising_strength=float(
                self.get_input_value(DENOISING_STRENGTH, defaults.denoising_strength)
            ),
        )


class OutputStore:
    """Output slot values owned by the node between executions."""

    def __init__(self, seed: int = 0):
        self._image: Optional[Image] = None
        self._seed: int = seed

    @property
    def image(self) -> Optional[Image]:
        return self._image

    @property
    def seed(self) -> int:
        return self._seed

    def commit(self, image: Optional[Image] = None, seed: Optional[int] = None) -> None:
        """Replace output values in one step. None leaves a slot unchanged."""
        new_image = self._image if image is None else image
        new_seed = self._seed if seed is None else seed
        self._image, self._seed = new_image, new_seed

    def request_value(self, name: str) -> Any:
        if name == OUT_IMAGE:
            return self._image
        if name == SEED:
            return self._seed
        return None


SeedObserver = Callable[[int, int], None]
