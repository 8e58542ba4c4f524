"""Assembles img2img requests from a node's input snapshot."""
import logging
from dataclasses import dataclass

from ..image import WHITE, Extent, Image
from ..settings import ImageFileFormat, Img2ImgOptions
from .codec import Img2ImgRequest, encode_image
from .errors import RequestBuildError
from .ports import InputSnapshot
from .seed import UNSET_SEED, SeedSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    request: Img2ImgRequest
    seed: int
    seed_drawn: bool


def opaque_mask(extent: Extent) -> Image:
    """Mask that keeps the whole source image eligible for regeneration."""
    return Image.create(extent, fill=WHITE)


class RequestBuilder:
    def __init__(
        self,
        options: Img2ImgOptions,
        seed_source: SeedSource | None = None,
        image_format: ImageFileFormat = ImageFileFormat.png,
    ):
        self.options = options
        self.seed_source = seed_source or SeedSource()
        self.image_format = image_format

    def resolve_seed(self, seed: int) -> tuple[int, bool]:
        if seed == UNSET_SEED:
            return self.seed_source.next_seed(), True
        return seed, False

    def build(self, snapshot: InputSnapshot, extent: Extent, seed: int) -> BuildResult:
        if snapshot.image is None:
            raise RequestBuildError("No source image bound to 'In Image'")
        if extent.is_zero:
            raise RequestBuildError(f"Invalid view size {extent}")

        effective_seed, drawn = self.resolve_seed(seed)
        if drawn:
            logger.debug(f"Drew new seed {effective_seed}")

        mask = snapshot.mask
        if mask is None:
            mask = opaque_mask(snapshot.image.extent)

        options = self.options
        request = Img2ImgRequest(
            init_images=[encode_image(snapshot.image, self.image_format)],
            mask=encode_image(mask, self.image_format),
            prompt=snapshot.prompt.positive,
            negative_prompt=snapshot.prompt.negative,
            steps=snapshot.steps,
            cfg_scale=snapshot.cfg_scale,
            denoising_strength=snapshot.denoising_strength,
            width=extent.width,
            height=extent.height,
            seed=effective_seed,
            tiling=False,
            sampler_name=options.sampler_name,
            inpainting_fill=options.inpainting_fill,
            inpaint_full_res=options.inpaint_full_res,
            inpaint_full_res_padding=options.inpaint_full_res_padding,
            inpainting_mask_invert=options.inpainting_mask_invert,
            mask_blur=options.mask_blur,
        )
        return BuildResult(request=request, seed=effective_seed, seed_drawn=drawn)
