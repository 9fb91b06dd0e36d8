"""并发处理的工作单元。"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from asset_squisher.core.classifier import classify
from asset_squisher.core.config import CompressionConfig, ImageVariantConfig
from asset_squisher.core.exceptions import FileProcessingError
from asset_squisher.core.models import FileCategory, OutputArtifact, PipelineOutcome, SourceFile
from asset_squisher.core.output_manager import PathMapper
from asset_squisher.processing.compression import GenericCompressionPipeline
from asset_squisher.processing.transcode import ImageTranscodingPipeline

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FileTask:
    """描述单个文件的处理任务。"""

    source: SourceFile
    input_root: Path
    output_root: Path
    compression: CompressionConfig
    images: ImageVariantConfig


def run_task(task: FileTask) -> PipelineOutcome:
    """在工作进程中执行单个文件的完整处理流程。"""

    source = task.source
    path_display = source.absolute_path
    LOGGER.info("开始处理 %s", path_display)
    start = time.perf_counter()

    try:
        status, artifacts = _dispatch(task)
    except FileProcessingError as exc:
        return _failure(source, exc.status, exc, start)
    except OSError as exc:
        return _failure(source, "error-io", exc, start)

    elapsed = time.perf_counter() - start
    LOGGER.info("完成 %s，耗时 %.2f 秒", path_display, elapsed)
    return PipelineOutcome(source=source, status=status, elapsed=elapsed, artifacts=tuple(artifacts))


def _dispatch(task: FileTask) -> tuple[str, list[OutputArtifact]]:
    source = task.source
    category = classify(source.absolute_path)
    if category is FileCategory.ALREADY_COMPRESSED:
        return "skipped-compressed", []

    mapper = PathMapper(task.output_root)
    relative = mapper.relative_of(source.absolute_path, task.input_root)
    destination = mapper.map(relative)

    if category is FileCategory.IMAGE:
        pipeline = ImageTranscodingPipeline(task.images, mapper)
    else:
        pipeline = GenericCompressionPipeline(task.compression, mapper)
    return "processed", pipeline.run(source, destination)


def _failure(source: SourceFile, status: str, exc: Exception, start: float) -> PipelineOutcome:
    elapsed = time.perf_counter() - start
    LOGGER.error("处理失败 %s（耗时 %.2f 秒）：%s", source.absolute_path, elapsed, exc)
    return PipelineOutcome(source=source, status=status, elapsed=elapsed, message=str(exc))
