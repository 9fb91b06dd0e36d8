"""按尺寸档位生成缩小版本。"""

from __future__ import annotations

from typing import Sequence

from PIL import Image

from asset_squisher.core.config import ResizeTier


def fit_within(image: Image.Image, max_dimension: int) -> Image.Image:
    """等比缩放到最长边不超过 max_dimension，不会放大。"""

    resized = image.copy()
    resized.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
    return resized


def derive_tiers(image: Image.Image, tiers: Sequence[ResizeTier]) -> list[tuple[ResizeTier, Image.Image]]:
    return [(tier, fit_within(image, tier.max_dimension)) for tier in tiers]
