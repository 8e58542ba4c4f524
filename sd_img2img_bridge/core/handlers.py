"""Framework-agnostic request handlers for the Bridge API.

These handlers contain the bridge logic without any framework-specific code,
so the node can be driven from FastAPI or any other host.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..image import Extent, Image, ImageDecodeError
from . import ports
from .codec import encode_image
from .ports import ControlNetData, Prompt
from .state import state

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Standard API response wrapper."""
    data: dict
    status: int = 200


@dataclass
class ExecuteParams:
    """Input bindings for one node execution."""
    image: str  # Base64 PNG bound to "In Image"
    prompt: str = ""
    negative_prompt: str = ""
    mask: Optional[str] = None  # Base64 PNG bound to "Mask"
    control_net: Optional[dict] = None  # Passed through as opaque data
    steps: Optional[int] = None
    cfg_scale: Optional[int] = None
    denoising_strength: Optional[float] = None
    seed: Optional[int] = None  # Overrides the node's local seed
    width: Optional[int] = None  # View size used for the request
    height: Optional[int] = None


async def handle_health() -> ApiResponse:
    """Handle health check request."""
    return ApiResponse(data={"status": "ok"})


async def handle_get_node() -> ApiResponse:
    """Handle node status request."""
    node = state.get_node()
    return ApiResponse(data={
        "state": node.state.value,
        "generating": node.is_generating,
        "seed": node.seed,
        "out_seed": node.request_value(ports.SEED),
        "has_image": node.request_value(ports.OUT_IMAGE) is not None,
        "server_url": node.settings.server_url,
    })


async def handle_execute(params: ExecuteParams) -> ApiResponse:
    """Bind inputs and start a node execution in the background.

    Returns:
        ApiResponse with status 202, or an error with status 400/409.
    """
    node = state.get_node()
    if node.is_generating:
        return ApiResponse(data={"error": "Generation already in progress"}, status=409)

    try:
        image = Image.from_base64(params.image)
        mask = Image.from_base64(params.mask) if params.mask else None
    except ImageDecodeError as e:
        return ApiResponse(data={"error": str(e)}, status=400)

    node.ports.bind(ports.IN_IMAGE, image)
    node.ports.bind(ports.PROMPT, Prompt(params.prompt, params.negative_prompt))
    if mask is not None:
        node.ports.bind(ports.MASK, mask)
    else:
        node.ports.unbind(ports.MASK)
    if params.control_net is not None:
        node.ports.bind(ports.CONTROL_NET, ControlNetData(params.control_net))
    else:
        node.ports.unbind(ports.CONTROL_NET)
    for name, value in (
        (ports.STEP, params.steps),
        (ports.CFG, params.cfg_scale),
        (ports.DENOISING_STRENGTH, params.denoising_strength),
    ):
        if value is not None:
            node.ports.bind(name, value)
        else:
            node.ports.unbind(name)

    if params.seed is not None:
        node.seed = params.seed
    if params.width and params.height:
        node.options.view_size = Extent(params.width, params.height)

    state.execution = asyncio.create_task(node.execute())
    # Let the workflow reach its first suspension point before answering
    await asyncio.sleep(0)
    return ApiResponse(data={"state": node.state.value, "seed": node.seed}, status=202)


async def handle_get_output(port: str) -> ApiResponse:
    """Handle output port read request.

    Returns:
        ApiResponse with the port value, or error with status 404.
    """
    node = state.get_node()
    if port not in ports.OUTPUT_PORTS:
        return ApiResponse(data={"error": f"Unknown output port: {port}"}, status=404)

    value = node.request_value(port)
    if port == ports.OUT_IMAGE:
        if value is None:
            return ApiResponse(data={"error": "No image available"}, status=404)
        value = encode_image(value, node.settings.image_format)
    return ApiResponse(data={"port": port, "value": value})


async def handle_cancel() -> ApiResponse:
    """Handle cancel request for the in-flight generation."""
    node = state.get_node()
    cancelled = node.cancel()
    return ApiResponse(data={"cancelled": cancelled})
