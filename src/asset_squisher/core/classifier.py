"""按扩展名对文件分类。"""

from __future__ import annotations

from pathlib import Path

from asset_squisher.core.exceptions import ClassificationError
from asset_squisher.core.models import FileCategory

# 大小写敏感：photo.PNG 不属于图片。
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "bmp", "avif", "webp"})
COMPRESSED_EXTENSIONS = frozenset({"br", "gz", "zst", "zz"})


def file_extension(path: Path) -> str | None:
    """返回最后一个点之后的部分；没有点或仅以点开头（如 .env）时返回 None。

    以点结尾的文件名（archive.）扩展名为空字符串，按普通文件处理。
    """

    stem, dot, extension = Path(path).name.rpartition(".")
    if not dot or not stem:
        return None
    return extension


def classify(path: Path) -> FileCategory:
    """根据扩展名返回文件类别，没有扩展名时抛出 ClassificationError。"""

    extension = file_extension(path)
    if extension is None:
        raise ClassificationError(f"文件没有扩展名: {path}")

    if extension in IMAGE_EXTENSIONS:
        return FileCategory.IMAGE
    if extension in COMPRESSED_EXTENSIONS:
        return FileCategory.ALREADY_COMPRESSED
    return FileCategory.GENERIC
