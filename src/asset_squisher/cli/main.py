"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from asset_squisher.core.config import (
    DEFAULT_BROTLI_LEVEL,
    DEFAULT_DEFLATE_LEVEL,
    DEFAULT_GZIP_LEVEL,
    DEFAULT_WEBP_QUALITY,
    DEFAULT_ZSTD_LEVEL,
    CompressionConfig,
    ImageVariantConfig,
    JobConfig,
    WebPMode,
)
from asset_squisher.core.exceptions import InvalidConfigurationError
from asset_squisher.core.progress import ProgressUpdate
from asset_squisher.processing.pipeline import process_batch
from asset_squisher.utils.logging import setup_logging

CONFIG_ERROR_EXIT_CODE = 2
FALSE_ENV_VALUES = {"false", "0"}

app = typer.Typer(help="批量预压缩静态资源：通用文件生成 br/gz/zst/zz，图片转码为 webp/avif/jpeg/png。")


def env_flag(value: Optional[str]) -> bool:
    """环境变量开关：已设置且不是 false/0 即视为开启。"""

    return value is not None and value not in FALSE_ENV_VALUES


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("处理文件", total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.message:
            progress.log(update.message)

    return callback


def build_job_config(  # noqa: PLR0913
    input_dir: Path,
    output_dir: Path,
    *,
    brotli_level: int,
    gzip_level: int,
    deflate_level: int,
    zstd_level: int,
    webp_lossless: bool,
    webp_quality: float,
    no_resize_images: bool,
    no_compress_images: bool,
    max_workers: Optional[int],
    report_path: Optional[Path],
) -> JobConfig:
    """把命令行选项组装成一次性构造的任务配置。"""

    webp = WebPMode.lossless_mode() if webp_lossless else WebPMode.lossy(webp_quality)
    return JobConfig(
        input_dir=input_dir,
        output_dir=output_dir,
        compression=CompressionConfig(
            brotli_level=brotli_level,
            gzip_level=gzip_level,
            deflate_level=deflate_level,
            zstd_level=zstd_level,
        ),
        images=ImageVariantConfig(
            webp=webp,
            resize_enabled=not no_resize_images,
            skip_recompression=no_compress_images,
        ),
        max_workers=max_workers,
        report_path=report_path,
    )


@app.command("run")
def run_cli(  # noqa: PLR0913
    input_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="输入目录，递归处理其中的所有文件"),
    output_dir: Path = typer.Argument(..., help="输出目录，保持与输入相同的目录结构"),
    brotli_level: int = typer.Option(DEFAULT_BROTLI_LEVEL, "--brotli-level", envvar="BROTLI_LEVEL", help="brotli 等级 1~11"),
    gzip_level: int = typer.Option(DEFAULT_GZIP_LEVEL, "--gzip-level", envvar="GZIP_LEVEL", help="gzip 等级 1~9"),
    deflate_level: int = typer.Option(
        DEFAULT_DEFLATE_LEVEL, "--deflate-level", envvar="DEFLATE_LEVEL", help="deflate 等级 1~9"
    ),
    zstd_level: int = typer.Option(DEFAULT_ZSTD_LEVEL, "--zstd-level", envvar="ZSTD_LEVEL", help="zstd 等级"),
    webp_lossless: bool = typer.Option(False, "--webp-lossless", help="WebP 使用无损编码"),
    webp_lossless_env: Optional[str] = typer.Option(None, "--webp-lossless-env", envvar="WEBP_LOSSLESS", hidden=True),
    webp_quality: float = typer.Option(
        DEFAULT_WEBP_QUALITY, "--webp-quality", envvar="WEBP_QUALITY", help="WebP 有损质量 0~100"
    ),
    no_resize_images: bool = typer.Option(
        False, "--no-resize-images", envvar="NO_RESIZE_IMAGES", help="不生成 small/medium/large 尺寸档位"
    ),
    no_compress_images: bool = typer.Option(
        False, "--no-compress-images", envvar="NO_COMPRESS_IMAGES", help="图片不转码，仅复制原文件"
    ),
    max_workers: Optional[int] = typer.Option(
        None, "--workers", "-w", envvar="ASSET_SQUISHER_WORKERS", help="并发进程数量，默认取 CPU 核数"
    ),
    report: Optional[Path] = typer.Option(None, "--report", help="写出 CSV 处理报告的路径"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """执行批量处理。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        job = build_job_config(
            input_dir.expanduser().resolve(),
            output_dir.expanduser().resolve(),
            brotli_level=brotli_level,
            gzip_level=gzip_level,
            deflate_level=deflate_level,
            zstd_level=zstd_level,
            webp_lossless=webp_lossless or env_flag(webp_lossless_env),
            webp_quality=webp_quality,
            no_resize_images=no_resize_images,
            no_compress_images=no_compress_images,
            max_workers=max_workers,
            report_path=report.expanduser().resolve() if report else None,
        )
    except InvalidConfigurationError as exc:
        typer.echo(f"配置错误：{exc}", err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from exc

    logging.getLogger(__name__).debug("CLI 参数解析完成")

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )

    with progress:
        result = process_batch(job, progress_callback=_build_progress_callback(progress))

    typer.echo(
        f"处理完成：成功 {len(result.succeeded)} 个，跳过 {len(result.skipped)} 个，失败 {len(result.failed)} 个。"
    )
    if job.report_path is not None:
        typer.echo(f"报告文件：{job.report_path}")

    if result.exit_code:
        raise typer.Exit(code=result.exit_code)


if __name__ == "__main__":
    app()
