"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class FileCategory(str, Enum):
    """按扩展名得到的文件类别。"""

    ALREADY_COMPRESSED = "already-compressed"
    IMAGE = "image"
    GENERIC = "generic"


class ArtifactKind(str, Enum):
    """输出产物使用的编码方式。"""

    BROTLI = "br"
    GZIP = "gz"
    ZSTD = "zst"
    DEFLATE = "zz"
    ORIGINAL = "original"
    WEBP = "webp"
    AVIF = "avif"
    JPEG = "jpeg"
    PNG = "png"


@dataclass(frozen=True, slots=True)
class SourceFile:
    """扫描阶段得到的源文件信息。"""

    absolute_path: Path
    relative_path: Path


@dataclass(frozen=True, slots=True)
class OutputArtifact:
    """一次流水线运行写出的单个文件。"""

    path: Path
    source: SourceFile
    kind: ArtifactKind
    variant_label: Optional[str] = None


@dataclass(slots=True)
class PipelineOutcome:
    """记录单个文件的处理结果（用于报告/日志）。"""

    source: SourceFile
    status: str
    elapsed: float = 0.0
    artifacts: tuple[OutputArtifact, ...] = ()
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.status.startswith("error")


@dataclass(slots=True)
class BatchResult:
    """批处理的汇总结果。"""

    succeeded: list[PipelineOutcome] = field(default_factory=list)
    skipped: list[PipelineOutcome] = field(default_factory=list)
    failed: list[PipelineOutcome] = field(default_factory=list)
    any_failure: bool = False

    @property
    def exit_code(self) -> int:
        return 1 if self.any_failure else 0

    def all_outcomes(self) -> list[PipelineOutcome]:
        """返回所有结果记录，方便生成报告。"""

        return [*self.succeeded, *self.skipped, *self.failed]
