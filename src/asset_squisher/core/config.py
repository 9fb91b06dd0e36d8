"""处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import zstandard

from asset_squisher.core.exceptions import InvalidConfigurationError

DEFAULT_BROTLI_LEVEL = 5
DEFAULT_GZIP_LEVEL = 6
DEFAULT_DEFLATE_LEVEL = DEFAULT_GZIP_LEVEL
DEFAULT_ZSTD_LEVEL = 7
DEFAULT_WEBP_QUALITY = 80.0

# libwebp 无损路径内部使用的固定质量参数。
WEBP_LOSSLESS_QUALITY = 75.0

BROTLI_LEVEL_RANGE = (1, 11)
GZIP_LEVEL_RANGE = (1, 9)
DEFLATE_LEVEL_RANGE = (1, 9)
# ZSTD_minCLevel() == -ZSTD_TARGETLENGTH_MAX
ZSTD_LEVEL_RANGE = (-(1 << 17), zstandard.MAX_COMPRESSION_LEVEL)


def _check_level(name: str, value: object, bounds: Tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} 必须为整数，实际为 {value!r}")
    if not low <= value <= high:
        raise InvalidConfigurationError(f"{name} 必须介于 {low} 与 {high} 之间（含），实际为 {value}")


@dataclass(frozen=True, slots=True)
class CompressionConfig:
    """通用文件压缩等级配置。"""

    brotli_level: int = DEFAULT_BROTLI_LEVEL
    gzip_level: int = DEFAULT_GZIP_LEVEL
    deflate_level: int = DEFAULT_DEFLATE_LEVEL
    zstd_level: int = DEFAULT_ZSTD_LEVEL

    def __post_init__(self) -> None:
        _check_level("brotli_level", self.brotli_level, BROTLI_LEVEL_RANGE)
        _check_level("gzip_level", self.gzip_level, GZIP_LEVEL_RANGE)
        _check_level("deflate_level", self.deflate_level, DEFLATE_LEVEL_RANGE)
        _check_level("zstd_level", self.zstd_level, ZSTD_LEVEL_RANGE)


@dataclass(frozen=True, slots=True)
class WebPMode:
    """WebP 编码模式：无损，或指定质量的有损。"""

    lossless: bool = False
    quality: float = DEFAULT_WEBP_QUALITY

    def __post_init__(self) -> None:
        if isinstance(self.quality, bool) or not isinstance(self.quality, (int, float)):
            raise InvalidConfigurationError(f"webp_quality 必须为数字，实际为 {self.quality!r}")
        if not 0.0 <= self.quality <= 100.0:
            raise InvalidConfigurationError(f"webp_quality 必须介于 0 与 100 之间（含），实际为 {self.quality}")

    @classmethod
    def lossy(cls, quality: float = DEFAULT_WEBP_QUALITY) -> "WebPMode":
        return cls(lossless=False, quality=quality)

    @classmethod
    def lossless_mode(cls) -> "WebPMode":
        return cls(lossless=True, quality=WEBP_LOSSLESS_QUALITY)

    @property
    def encoder_quality(self) -> float:
        """传给编码器的质量参数。"""

        if self.lossless:
            return WEBP_LOSSLESS_QUALITY
        return float(self.quality)


@dataclass(frozen=True, slots=True)
class ResizeTier:
    """命名的尺寸档位：最长边不超过 max_dimension。"""

    label: str
    max_dimension: int

    def __post_init__(self) -> None:
        if not self.label or "/" in self.label or "\\" in self.label:
            raise InvalidConfigurationError(f"非法的尺寸档位名称: {self.label!r}")
        if isinstance(self.max_dimension, bool) or not isinstance(self.max_dimension, int):
            raise InvalidConfigurationError(f"尺寸档位 {self.label} 的最大边长必须为整数")
        if self.max_dimension <= 0:
            raise InvalidConfigurationError(f"尺寸档位 {self.label} 的最大边长必须大于 0")


DEFAULT_RESIZE_TIERS: Tuple[ResizeTier, ...] = (
    ResizeTier("small", 256),
    ResizeTier("medium", 512),
    ResizeTier("large", 1024),
)


@dataclass(frozen=True, slots=True)
class ImageVariantConfig:
    """图片转码相关配置。"""

    webp: WebPMode = WebPMode()
    resize_enabled: bool = True
    resize_tiers: Sequence[ResizeTier] = DEFAULT_RESIZE_TIERS
    skip_recompression: bool = False

    def __post_init__(self) -> None:
        tiers = tuple(self.resize_tiers)
        labels = [tier.label for tier in tiers]
        if len(set(labels)) != len(labels):
            raise InvalidConfigurationError(f"尺寸档位名称重复: {', '.join(labels)}")
        object.__setattr__(self, "resize_tiers", tiers)

    @property
    def active_tiers(self) -> Tuple[ResizeTier, ...]:
        if not self.resize_enabled:
            return ()
        return tuple(self.resize_tiers)


@dataclass(frozen=True, slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    input_dir: Path
    output_dir: Path
    compression: CompressionConfig = CompressionConfig()
    images: ImageVariantConfig = ImageVariantConfig()
    max_workers: Optional[int] = None
    report_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidConfigurationError(f"并发数量必须至少为 1，实际为 {self.max_workers}")
        if Path(self.input_dir).resolve() == Path(self.output_dir).resolve():
            raise InvalidConfigurationError(f"输出目录不能与输入目录相同: {self.output_dir}")
