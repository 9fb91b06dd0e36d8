"""图片转码：为原尺寸及各档位输出 WebP、AVIF、JPEG、PNG。"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from asset_squisher.core.config import ImageVariantConfig
from asset_squisher.core.exceptions import EncodeError
from asset_squisher.core.models import ArtifactKind, OutputArtifact, SourceFile
from asset_squisher.core.output_manager import PathMapper
from asset_squisher.processing.image_loader import load_image
from asset_squisher.processing.resize import derive_tiers

LOGGER = logging.getLogger(__name__)

ImageEncoder = Callable[[Image.Image], bytes]


class ImageTranscodingPipeline:
    """解码一次，按顺序为每个尺寸实例写出四种格式。

    任一格式编码或写入失败即终止该文件的处理，已写出的产物保留。
    """

    def __init__(self, config: ImageVariantConfig, mapper: PathMapper) -> None:
        self.config = config
        self.mapper = mapper
        self.encoders: list[tuple[ArtifactKind, ImageEncoder]] = [
            (ArtifactKind.WEBP, self._encode_webp),
            (ArtifactKind.AVIF, _encode_avif),
            (ArtifactKind.JPEG, _encode_jpeg),
            (ArtifactKind.PNG, _encode_png),
        ]

    def run(self, source: SourceFile, destination: Path) -> list[OutputArtifact]:
        self.mapper.ensure_parent(destination)

        if self.config.skip_recompression:
            # 不转码时仅保留原文件；已存在则跳过。
            if self.mapper.copy_if_missing(source.absolute_path, destination):
                return [OutputArtifact(path=destination, source=source, kind=ArtifactKind.ORIGINAL)]
            return []

        image = load_image(source.absolute_path)
        instances: list[tuple[Optional[str], Image.Image]] = [(None, image)]
        try:
            for tier, resized in derive_tiers(image, self.config.active_tiers):
                instances.append((tier.label, resized))

            artifacts: list[OutputArtifact] = []
            for label, instance in instances:
                base = destination if label is None else self.mapper.with_label(destination, label)
                artifacts.extend(self._render(source, instance, base, label))
            return artifacts
        finally:
            _close_all(img for _, img in instances)

    def _render(
        self,
        source: SourceFile,
        image: Image.Image,
        base: Path,
        label: Optional[str],
    ) -> list[OutputArtifact]:
        rendered: list[OutputArtifact] = []
        for kind, encoder in self.encoders:
            target_path = self.mapper.with_format(base, kind.value)
            data = encoder(image)
            self.mapper.write_new(target_path, data)
            LOGGER.debug("写出 %s (%dx%d)", target_path, image.width, image.height)
            rendered.append(OutputArtifact(path=target_path, source=source, kind=kind, variant_label=label))
        return rendered

    def _encode_webp(self, image: Image.Image) -> bytes:
        mode = self.config.webp
        return _encode(image, "WEBP", lossless=mode.lossless, quality=mode.encoder_quality)


def _encode_avif(image: Image.Image) -> bytes:
    return _encode(image, "AVIF")


def _encode_jpeg(image: Image.Image) -> bytes:
    # JPEG 不支持透明通道，直接丢弃。
    rgb = image if image.mode == "RGB" else image.convert("RGB")
    return _encode(rgb, "JPEG")


def _encode_png(image: Image.Image) -> bytes:
    return _encode(image, "PNG")


def _encode(image: Image.Image, image_format: str, **params) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format=image_format, **params)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"{image_format} 编码失败: {exc}") from exc
    return buffer.getvalue()


def _close_all(images) -> None:
    for img in images:
        img.close()
