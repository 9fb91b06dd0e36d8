"""通用文件压缩：brotli、gzip、zstd、raw deflate 以及原文件副本。"""

from __future__ import annotations

import gzip
import logging
import zlib
from pathlib import Path
from typing import BinaryIO, Callable

import brotli
import zstandard

from asset_squisher.core.config import CompressionConfig
from asset_squisher.core.exceptions import AssetIOError, EncodeError, FileProcessingError
from asset_squisher.core.models import ArtifactKind, OutputArtifact, SourceFile
from asset_squisher.core.output_manager import PathMapper

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
BROTLI_WINDOW_BITS = 20
DEFLATE_WINDOW_BITS = -zlib.MAX_WBITS

StreamEncoder = Callable[[BinaryIO, BinaryIO], None]


class GenericCompressionPipeline:
    """为普通文件生成 .br/.gz/.zst/.zz 四种压缩产物与一份原文件副本。

    各编码步骤共享同一个源文件句柄，每步结束后回到文件开头，
    因此必须按顺序执行。
    """

    def __init__(self, config: CompressionConfig, mapper: PathMapper) -> None:
        self.config = config
        self.mapper = mapper

    def run(self, source: SourceFile, destination: Path) -> list[OutputArtifact]:
        artifacts: list[OutputArtifact] = []
        steps: list[tuple[ArtifactKind, StreamEncoder]] = [
            (ArtifactKind.BROTLI, self._encode_brotli),
            (ArtifactKind.GZIP, self._encode_gzip),
            (ArtifactKind.ZSTD, self._encode_zstd),
            (ArtifactKind.DEFLATE, self._encode_deflate),
        ]

        self.mapper.ensure_parent(destination)
        try:
            handle = source.absolute_path.open("rb")
        except OSError as exc:
            raise AssetIOError(f"无法打开源文件: {source.absolute_path}") from exc

        with handle:
            for kind, encoder in steps:
                target_path = self.mapper.with_codec(destination, kind.value)
                with self.mapper.create_new(target_path) as target:
                    _run_encoder(encoder, handle, target, target_path)
                artifacts.append(OutputArtifact(path=target_path, source=source, kind=kind))
                LOGGER.debug("写出 %s", target_path)
                _rewind(handle, source.absolute_path)

        self.mapper.copy_new(source.absolute_path, destination)
        artifacts.append(OutputArtifact(path=destination, source=source, kind=ArtifactKind.ORIGINAL))
        return artifacts

    def _encode_brotli(self, src: BinaryIO, dst: BinaryIO) -> None:
        compressor = brotli.Compressor(quality=self.config.brotli_level, lgwin=BROTLI_WINDOW_BITS)
        for chunk in _iter_chunks(src):
            dst.write(compressor.process(chunk))
        dst.write(compressor.finish())

    def _encode_gzip(self, src: BinaryIO, dst: BinaryIO) -> None:
        # 固定 mtime 与空文件名，保证产物可复现。
        with gzip.GzipFile(filename="", mode="wb", fileobj=dst, compresslevel=self.config.gzip_level, mtime=0) as gz:
            for chunk in _iter_chunks(src):
                gz.write(chunk)

    def _encode_zstd(self, src: BinaryIO, dst: BinaryIO) -> None:
        compressor = zstandard.ZstdCompressor(level=self.config.zstd_level)
        compressor.copy_stream(src, dst, read_size=CHUNK_SIZE)

    def _encode_deflate(self, src: BinaryIO, dst: BinaryIO) -> None:
        compressor = zlib.compressobj(self.config.deflate_level, zlib.DEFLATED, DEFLATE_WINDOW_BITS)
        for chunk in _iter_chunks(src):
            dst.write(compressor.compress(chunk))
        dst.write(compressor.flush())


def _iter_chunks(handle: BinaryIO):
    while True:
        chunk = handle.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def _run_encoder(encoder: StreamEncoder, src: BinaryIO, dst: BinaryIO, target_path: Path) -> None:
    try:
        encoder(src, dst)
    except FileProcessingError:
        raise
    except OSError as exc:
        raise AssetIOError(f"写入压缩文件失败: {target_path}") from exc
    except (brotli.error, zstandard.ZstdError, zlib.error) as exc:
        raise EncodeError(f"压缩失败: {target_path}: {exc}") from exc


def _rewind(handle: BinaryIO, path: Path) -> None:
    try:
        handle.seek(0)
    except OSError as exc:
        raise AssetIOError(f"无法回到文件开头: {path}") from exc
