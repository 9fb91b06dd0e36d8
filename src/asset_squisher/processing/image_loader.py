"""图片加载与基础预处理实现。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from asset_squisher.core.exceptions import DecodeError

LOGGER = logging.getLogger(__name__)

ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}


def load_image(path: Path) -> Image.Image:
    """加载单张图片并执行 EXIF 旋转与模式归一化。

    带透明通道的图片统一为 RGBA，其余统一为 RGB。
    返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(path) as img:
            img.load()

            # EXIF Orientation 校正
            img = ImageOps.exif_transpose(img)

            target_mode = "RGBA" if _has_alpha(img) else "RGB"
            if img.mode != target_mode:
                img = img.convert(target_mode)

            return img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise DecodeError(f"无法解码图像: {path}") from exc


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in ALPHA_MODES:
        return True
    return img.mode == "P" and "transparency" in img.info
