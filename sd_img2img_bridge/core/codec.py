"""JSON envelopes and base64 image encoding for the img2img API."""
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..image import Extent, Image, ImageDecodeError
from ..settings import ImageFileFormat
from .errors import PayloadError

logger = logging.getLogger(__name__)


class Img2ImgRequest(BaseModel):
    """Body of POST /sdapi/v1/img2img."""
    model_config = ConfigDict(extra="forbid")

    init_images: list[str]
    mask: str
    prompt: str = ""
    negative_prompt: str = ""
    steps: int = 20
    cfg_scale: int = 7
    denoising_strength: float = 0.75
    width: int = 512
    height: int = 512
    seed: int = -1
    tiling: bool = False
    sampler_name: str = "Euler"
    inpainting_fill: int = 0
    inpaint_full_res: bool = True
    inpaint_full_res_padding: int = 32
    inpainting_mask_invert: int = 0
    mask_blur: int = 0


class Img2ImgResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    images: list[str] = Field(default_factory=list)
    info: str = ""

    @field_validator("images", "info", mode="before")
    @classmethod
    def null_as_empty(cls, v, info):
        if v is None:
            return [] if info.field_name == "images" else ""
        return v


class GenerationInfo(BaseModel):
    """Decoded `info` string of a generation response."""
    model_config = ConfigDict(extra="ignore")

    seed: int


def encode_image(image: Image, format: ImageFileFormat = ImageFileFormat.png) -> str:
    return image.to_base64(compress_level=format.compress_level)


def decode_image(data: str, extent: Optional[Extent] = None) -> Image:
    """Decode a base64 PNG. The image keeps its own size; `extent` is only checked."""
    try:
        image = Image.from_base64(data)
    except ImageDecodeError as e:
        raise PayloadError(str(e)) from e
    if extent is not None and image.extent != extent:
        logger.warning(f"Server returned a {image.extent} image, expected {extent}")
    return image


def encode_request(request: Img2ImgRequest) -> str:
    return request.model_dump_json()


def decode_request(text: str) -> Img2ImgRequest:
    try:
        return Img2ImgRequest.model_validate_json(text)
    except ValidationError as e:
        raise PayloadError(f"Invalid img2img request: {e}") from e


def decode_response(text: str) -> Img2ImgResponse:
    try:
        return Img2ImgResponse.model_validate_json(text)
    except ValidationError as e:
        raise PayloadError(f"Invalid img2img response: {e}") from e


def decode_info(text: str) -> GenerationInfo:
    try:
        return GenerationInfo.model_validate_json(text)
    except ValidationError as e:
        raise PayloadError(f"Invalid generation info: {e}") from e
