"""输出路径映射与写入模块。"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Optional

from asset_squisher.core.exceptions import AssetIOError, DestinationExistsError, PathMappingError

LOGGER = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024


class PathMapper:
    """负责把输入相对路径映射到输出目录，并以“已存在即失败”的方式创建文件。

    同一个源文件派生出的各个产物，其扩展名与档位后缀两两不同，
    因此只有重复运行时才会出现目标已存在的冲突。
    """

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    @staticmethod
    def relative_of(path: Path, input_root: Path) -> Path:
        """计算 path 相对于输入根目录的路径。"""

        try:
            return Path(path).relative_to(input_root)
        except ValueError as exc:
            raise PathMappingError(f"{path} 不在输入目录 {input_root} 之下") from exc

    def map(self, relative_path: Path, suffix: Optional[str] = None) -> Path:
        """返回输出路径；给定 suffix 时插入到文件名与扩展名之间。"""

        relative_path = Path(relative_path)
        if relative_path.is_absolute() or ".." in relative_path.parts or not relative_path.name:
            raise PathMappingError(f"非法的相对路径: {relative_path}")

        destination = self.output_root / relative_path
        if suffix:
            destination = self.with_label(destination, suffix)
        return destination

    @staticmethod
    def with_label(destination: Path, label: str) -> Path:
        """在文件名与扩展名之间插入档位后缀：photo.png -> photo-small.png。"""

        return destination.with_name(f"{destination.stem}-{label}{destination.suffix}")

    @staticmethod
    def with_codec(destination: Path, extension: str) -> Path:
        """追加压缩扩展名：x.txt -> x.txt.br。"""

        return destination.with_name(f"{destination.name}.{extension}")

    @staticmethod
    def with_format(destination: Path, extension: str) -> Path:
        """替换图片扩展名：photo-small.png -> photo-small.webp。"""

        return destination.with_suffix(f".{extension}")

    @staticmethod
    def ensure_parent(destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AssetIOError(f"无法创建输出目录: {destination.parent}") from exc

    @staticmethod
    def create_new(destination: Path) -> BinaryIO:
        """以独占方式创建文件，已存在时抛出 DestinationExistsError。"""

        try:
            return destination.open("xb")
        except FileExistsError as exc:
            raise DestinationExistsError(f"目标已存在: {destination}") from exc
        except OSError as exc:
            raise AssetIOError(f"无法创建文件: {destination}") from exc

    def write_new(self, destination: Path, data: bytes) -> None:
        with self.create_new(destination) as handle:
            try:
                handle.write(data)
            except OSError as exc:
                raise AssetIOError(f"写入文件失败: {destination}") from exc

    def copy_new(self, source: Path, destination: Path) -> None:
        """逐字节复制源文件，目标已存在时失败。"""

        with self.create_new(destination) as target:
            try:
                with source.open("rb") as handle:
                    shutil.copyfileobj(handle, target, COPY_CHUNK_SIZE)
            except OSError as exc:
                raise AssetIOError(f"复制文件失败: {source} -> {destination}") from exc

    def copy_if_missing(self, source: Path, destination: Path) -> bool:
        """目标不存在时复制原文件；已存在则跳过并返回 False。"""

        try:
            self.copy_new(source, destination)
        except DestinationExistsError:
            LOGGER.debug("跳过复制（已存在）：%s", destination)
            return False
        return True
