"""处理流水线：扫描、并发执行逐文件任务并汇总结果。"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ProcessPoolExecutor, as_completed
from multiprocessing.context import BaseContext
from typing import Callable, Optional, Sequence

from asset_squisher.core.config import JobConfig
from asset_squisher.core.models import BatchResult, PipelineOutcome
from asset_squisher.core.progress import ProgressUpdate
from asset_squisher.core.report import write_csv_report
from asset_squisher.core.scanner import collect_source_files
from asset_squisher.processing.worker import FileTask, run_task
from asset_squisher.utils.logging import setup_logging

LOGGER = logging.getLogger(__name__)

DEFAULT_PARALLELISM = 1

ProgressCallback = Optional[Callable[[ProgressUpdate], None]]
PerFilePipeline = Callable[[FileTask], PipelineOutcome]


def default_worker_count() -> int:
    """可用的硬件并行度，无法确定时退回 1。"""

    return os.cpu_count() or DEFAULT_PARALLELISM


class AggregateStatus:
    """跨工作单元共享的“是否出现失败”标记。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failed = False

    def mark_failed(self) -> None:
        with self._lock:
            self._failed = True

    @property
    def failed(self) -> bool:
        with self._lock:
            return self._failed


class ParallelExecutor:
    """把逐文件任务分发到进程池，单个文件失败不影响其他文件。"""

    def __init__(self, max_workers: Optional[int] = None, mp_context: Optional[BaseContext] = None) -> None:
        self.max_workers = max_workers or default_worker_count()
        self.mp_context = mp_context

    def run(
        self,
        tasks: Sequence[FileTask],
        per_file: PerFilePipeline = run_task,
        progress_callback: ProgressCallback = None,
    ) -> BatchResult:
        result = BatchResult()
        status = AggregateStatus()
        total = len(tasks)
        completed = 0

        _emit_progress(progress_callback, completed, total, "开始执行处理任务")

        if self.max_workers <= 1 or total <= 1:
            for task in tasks:
                outcome = _guarded(per_file, task)
                _record_outcome(outcome, result, status)
                completed += 1
                _emit_progress(progress_callback, completed, total, _describe(outcome), failed=len(result.failed))
        else:
            # forkserver/spawn 启动的子进程不继承父进程的日志配置。
            with ProcessPoolExecutor(
                max_workers=min(self.max_workers, total),
                mp_context=self.mp_context,
                initializer=setup_logging,
                initargs=(logging.getLogger().getEffectiveLevel(),),
            ) as executor:
                future_map = {executor.submit(per_file, task): task for task in tasks}
                for future in as_completed(future_map):
                    task = future_map[future]
                    try:
                        outcome = future.result()
                    except Exception as exc:  # noqa: BLE001
                        LOGGER.exception("任务执行异常 %s：%s", task.source.absolute_path, exc)
                        outcome = PipelineOutcome(source=task.source, status="error-worker", message=str(exc))
                    _record_outcome(outcome, result, status)
                    completed += 1
                    _emit_progress(progress_callback, completed, total, _describe(outcome), failed=len(result.failed))

        result.any_failure = status.failed
        return result


def process_batch(config: JobConfig, progress_callback: ProgressCallback = None) -> BatchResult:
    """批量处理入口：扫描输入目录、并发处理并汇总。"""

    input_root = config.input_dir.resolve()
    output_root = config.output_dir.resolve()

    LOGGER.info("开始扫描输入路径 %s", input_root)
    sources = collect_source_files(input_root, exclude=output_root)
    LOGGER.info("发现 %d 个候选文件", len(sources))

    if not sources:
        _emit_progress(progress_callback, completed=0, total=0, message="没有需要处理的文件")
        return BatchResult()

    output_root.mkdir(parents=True, exist_ok=True)
    tasks = [
        FileTask(
            source=source,
            input_root=input_root,
            output_root=output_root,
            compression=config.compression,
            images=config.images,
        )
        for source in sources
    ]

    result = ParallelExecutor(config.max_workers).run(tasks, progress_callback=progress_callback)
    if config.report_path is not None:
        _write_report(config, result)

    LOGGER.info(
        "处理完成：成功 %d 个，跳过 %d 个，失败 %d 个",
        len(result.succeeded),
        len(result.skipped),
        len(result.failed),
    )
    return result


def _guarded(per_file: PerFilePipeline, task: FileTask) -> PipelineOutcome:
    try:
        return per_file(task)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("任务执行异常 %s：%s", task.source.absolute_path, exc)
        return PipelineOutcome(source=task.source, status="error-worker", message=str(exc))


def _record_outcome(outcome: PipelineOutcome, result: BatchResult, status: AggregateStatus) -> None:
    if not outcome.ok:
        status.mark_failed()
        result.failed.append(outcome)
    elif outcome.status.startswith("skipped"):
        result.skipped.append(outcome)
    else:
        result.succeeded.append(outcome)


def _describe(outcome: PipelineOutcome) -> str:
    name = outcome.source.relative_path
    if outcome.ok:
        return f"完成 {name}"
    return f"失败 {name}：{outcome.message}"


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    failed: int = 0,
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, failed=failed, message=message))


def _write_report(config: JobConfig, result: BatchResult) -> None:
    assert config.report_path is not None
    try:
        write_csv_report(result.all_outcomes(), config.report_path)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
