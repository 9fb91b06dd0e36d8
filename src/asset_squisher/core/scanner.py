"""文件扫描逻辑。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from asset_squisher.core.models import SourceFile

LOGGER = logging.getLogger(__name__)


def _log_walk_error(error: OSError) -> None:
    LOGGER.warning("遍历目录出错: %s", error)


def _is_within(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def _iter_regular_files(root: Path, exclude: Optional[Path]) -> Iterator[Path]:
    """遍历 root 下的所有普通文件，不跟随符号链接。"""

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        current = Path(dirpath)
        if exclude is not None:
            dirnames[:] = [name for name in dirnames if not _is_within(current / name, exclude)]

        for name in filenames:
            candidate = current / name
            if candidate.is_symlink() or not candidate.is_file():
                continue
            yield candidate


def collect_source_files(input_dir: Path, exclude: Optional[Path] = None) -> list[SourceFile]:
    """扫描输入目录，返回所有普通文件。

    exclude 通常是嵌套在输入目录中的输出目录，避免处理自己的产物。
    """

    root = Path(input_dir).resolve()
    excluded = Path(exclude).resolve() if exclude is not None else None
    if excluded is not None and not _is_within(excluded, root):
        excluded = None

    collected = [
        SourceFile(absolute_path=candidate, relative_path=candidate.relative_to(root))
        for candidate in _iter_regular_files(root, excluded)
    ]
    collected.sort(key=lambda x: str(x.relative_path))
    return collected
