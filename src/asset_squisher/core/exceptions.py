"""项目内使用的自定义异常定义。"""

from __future__ import annotations


class AssetSquisherError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(AssetSquisherError):
    """配置不合法时抛出（启动阶段即致命）。"""


class FileProcessingError(AssetSquisherError):
    """单个文件处理失败，只影响该文件。"""

    status = "error"


class AssetIOError(FileProcessingError):
    """打开、读取、写入或创建目录失败。"""

    status = "error-io"


class DestinationExistsError(AssetIOError):
    """目标文件已存在，拒绝覆盖。"""


class DecodeError(FileProcessingError):
    """图像字节无法解码。"""

    status = "error-decode"


class EncodeError(FileProcessingError):
    """编码器无法输出目标格式。"""

    status = "error-encode"


class PathMappingError(FileProcessingError):
    """无法计算相对路径或输出路径。"""

    status = "error-path"


class ClassificationError(FileProcessingError):
    """文件没有扩展名，无法分类。"""

    status = "error-classify"
