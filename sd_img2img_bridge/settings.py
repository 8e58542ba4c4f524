"""Bridge settings: server endpoints, credentials and polling behaviour."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .image import Extent


DEFAULT_SERVER_URL = "http://127.0.0.1:7860"
DEFAULT_IMG2IMG_PATH = "/sdapi/v1/img2img"
DEFAULT_PROGRESS_PATH = "/sdapi/v1/progress"


class ImageFileFormat(Enum):
    png = "PNG (fast)"
    png_small = "PNG"

    @property
    def compress_level(self) -> int:
        if self is ImageFileFormat.png_small:
            return 9
        return 1


class SeedResetPolicy(str, Enum):
    # Reset the local seed after every successful info decode, pinned or not.
    always = "always"
    # Reset only when the seed was drawn locally for this execution.
    unpinned_only = "unpinned_only"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass
class BridgeSettings:
    server_url: str = DEFAULT_SERVER_URL
    img2img_path: str = DEFAULT_IMG2IMG_PATH
    progress_path: str = DEFAULT_PROGRESS_PATH
    use_auth: bool = False
    username: str = ""
    password: str = ""
    poll_interval: float = 0.5
    report_progress: bool = False
    timeout: Optional[float] = None  # seconds, None waits forever
    seed_reset_policy: SeedResetPolicy = SeedResetPolicy.unpinned_only
    image_format: ImageFileFormat = ImageFileFormat.png

    @property
    def img2img_url(self) -> str:
        return self.server_url.rstrip("/") + self.img2img_path

    @property
    def progress_url(self) -> str:
        return self.server_url.rstrip("/") + self.progress_path

    @property
    def has_credentials(self) -> bool:
        return self.use_auth and self.username != "" and self.password != ""

    @staticmethod
    def from_env() -> "BridgeSettings":
        """Read settings from SD_* environment variables, falling back to defaults."""
        policy = os.getenv("SD_SEED_RESET_POLICY", SeedResetPolicy.unpinned_only.value)
        image_format = os.getenv("SD_IMAGE_FORMAT", ImageFileFormat.png.name)
        return BridgeSettings(
            server_url=os.getenv("SD_SERVER_URL", DEFAULT_SERVER_URL),
            img2img_path=os.getenv("SD_IMG2IMG_PATH", DEFAULT_IMG2IMG_PATH),
            progress_path=os.getenv("SD_PROGRESS_PATH", DEFAULT_PROGRESS_PATH),
            use_auth=_env_flag("SD_USE_AUTH", False),
            username=os.getenv("SD_USERNAME", ""),
            password=os.getenv("SD_PASSWORD", ""),
            poll_interval=_env_float("SD_POLL_INTERVAL", 0.5) or 0.5,
            report_progress=_env_flag("SD_REPORT_PROGRESS", False),
            timeout=_env_float("SD_TIMEOUT", None),
            seed_reset_policy=SeedResetPolicy(policy),
            image_format=ImageFileFormat[image_format],
        )


@dataclass
class Img2ImgOptions:
    """Node configuration that is not wired through input ports."""
    sampler_name: str = "Euler"
    inpainting_fill: int = 0
    inpaint_full_res: bool = True
    inpaint_full_res_padding: int = 32
    inpainting_mask_invert: int = 0
    mask_blur: int = 0
    # Defaults for the unbound numeric inputs
    steps: int = 20
    cfg_scale: int = 7
    denoising_strength: float = 0.75
    seed: int = -1
    view_size: Extent = field(default_factory=lambda: Extent(512, 512))
