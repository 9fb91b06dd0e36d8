"""测试批处理驱动：逐文件隔离、并发执行与汇总状态。"""

from __future__ import annotations

import csv
import logging
import multiprocessing
import os
import subprocess
import sys
import threading
from pathlib import Path

import pytest
from PIL import Image, features

from asset_squisher.core.config import CompressionConfig, ImageVariantConfig, JobConfig
from asset_squisher.core.models import PipelineOutcome, SourceFile
from asset_squisher.core.progress import ProgressUpdate
from asset_squisher.processing.pipeline import AggregateStatus, ParallelExecutor, process_batch
from asset_squisher.processing.worker import FileTask, run_task


def make_config(source: Path, output: Path, *, max_workers: int = 1, **kwargs) -> JobConfig:
    return JobConfig(input_dir=source, output_dir=output, max_workers=max_workers, **kwargs)


def _populate_generic(source: Path) -> None:
    (source / "css").mkdir(parents=True)
    (source / "js").mkdir()
    (source / "index.html").write_text("<html></html>" * 100)
    (source / "css" / "site.css").write_text("body {}" * 100)
    (source / "js" / "app.js").write_text("console.log(1);" * 100)


def test_decode_failure_is_isolated(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _populate_generic(source)
    (source / "broken.png").write_text("not an image")

    with caplog.at_level(logging.INFO):
        result = process_batch(make_config(source, output))

    assert len(result.succeeded) == 3
    assert len(result.failed) == 1
    assert result.failed[0].status == "error-decode"
    assert result.failed[0].source.relative_path == Path("broken.png")
    assert result.any_failure
    assert result.exit_code == 1

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "broken.png" in errors[0].getMessage()

    for name in ("index.html", "css/site.css", "js/app.js"):
        for suffix in ("", ".br", ".gz", ".zst", ".zz"):
            assert (output / f"{name}{suffix}").exists()


def test_successful_batch_has_zero_exit_code(tmp_path: Path) -> None:
    source = tmp_path / "input"
    _populate_generic(source)

    result = process_batch(make_config(source, tmp_path / "output"))

    assert not result.any_failure
    assert result.exit_code == 0
    assert all(outcome.elapsed >= 0 for outcome in result.succeeded)
    assert all(len(outcome.artifacts) == 5 for outcome in result.succeeded)


def test_already_compressed_and_extensionless_files(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    (source / "bundle.js.br").write_bytes(b"\x00")
    (source / "bundle.js.gz").write_bytes(b"\x00")
    (source / "LICENSE").write_text("MIT")

    result = process_batch(make_config(source, tmp_path / "output"))

    assert sorted(o.status for o in result.skipped) == ["skipped-compressed", "skipped-compressed"]
    assert [o.status for o in result.failed] == ["error-classify"]
    assert result.exit_code == 1
    assert list((tmp_path / "output").iterdir()) == []


def test_uppercase_image_extension_is_compressed_as_generic(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    Image.new("RGB", (8, 8), "red").save(source / "photo.PNG", format="PNG")

    result = process_batch(make_config(source, tmp_path / "output"))

    assert len(result.succeeded) == 1
    assert (tmp_path / "output" / "photo.PNG.br").exists()
    assert not (tmp_path / "output" / "photo.webp").exists()


def test_rerun_over_existing_output_fails_per_file(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _populate_generic(source)

    assert process_batch(make_config(source, output)).exit_code == 0
    second = process_batch(make_config(source, output))

    assert len(second.failed) == 3
    assert all(o.status == "error-io" for o in second.failed)


def test_output_nested_in_input_is_not_rescanned(tmp_path: Path) -> None:
    source = tmp_path / "input"
    _populate_generic(source)
    output = source / "dist"
    output.mkdir()
    (output / "stale.txt").write_text("left over from a previous run")

    result = process_batch(make_config(source, output))

    assert len(result.succeeded) == 3
    assert not result.failed
    assert not (output / "stale.txt.br").exists()
    assert not (output / "dist").exists()


@pytest.mark.skipif(not features.check("avif"), reason="当前 Pillow 未编译 AVIF 支持")
def test_mixed_tree_layout(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _populate_generic(source)
    (source / "img").mkdir()
    Image.new("RGBA", (300, 150), (0, 255, 0, 128)).save(source / "img" / "logo.png")

    result = process_batch(make_config(source, output, images=ImageVariantConfig(resize_enabled=False)))

    assert result.exit_code == 0
    assert sorted(p.name for p in (output / "img").iterdir()) == [
        "logo.avif",
        "logo.jpeg",
        "logo.png",
        "logo.webp",
    ]


def test_process_pool_runs_every_file(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _populate_generic(source)
    (source / "broken.jpg").write_bytes(b"\xff\xd8 truncated")
    updates: list[ProgressUpdate] = []

    result = process_batch(
        make_config(source, output, max_workers=2, compression=CompressionConfig(brotli_level=1)),
        progress_callback=updates.append,
    )

    assert len(result.succeeded) == 3
    assert len(result.failed) == 1
    assert updates[-1].completed == 4
    assert updates[-1].failed == 1
    assert (output / "js" / "app.js.zst").exists()


def _exploding(task: FileTask) -> PipelineOutcome:
    if task.source.relative_path.name == "boom.txt":
        raise RuntimeError("boom")
    return run_task(task)


def test_unexpected_worker_error_does_not_stop_others(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    output = tmp_path / "output"
    tasks = []
    for name in ("a.txt", "boom.txt", "c.txt"):
        (source / name).write_text(name)
        tasks.append(
            FileTask(
                source=SourceFile(absolute_path=source / name, relative_path=Path(name)),
                input_root=source,
                output_root=output,
                compression=CompressionConfig(),
                images=ImageVariantConfig(),
            )
        )

    result = ParallelExecutor(max_workers=1).run(tasks, per_file=_exploding)

    assert [o.source.relative_path.name for o in result.failed] == ["boom.txt"]
    assert result.failed[0].status == "error-worker"
    assert len(result.succeeded) == 2
    assert result.exit_code == 1


def test_aggregate_status_is_thread_safe() -> None:
    status = AggregateStatus()
    assert not status.failed

    threads = [threading.Thread(target=status.mark_failed) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert status.failed


def test_default_worker_count_is_positive() -> None:
    assert ParallelExecutor().max_workers >= 1


def test_report_is_written(tmp_path: Path) -> None:
    source = tmp_path / "input"
    _populate_generic(source)
    report = tmp_path / "reports" / "run.csv"

    process_batch(make_config(source, tmp_path / "output", report_path=report))

    with report.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 3
    assert {row["status"] for row in rows} == {"processed"}
    assert {row["artifact_count"] for row in rows} == {"5"}


def test_empty_input_is_success(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()

    result = process_batch(make_config(source, tmp_path / "output"))

    assert result.exit_code == 0
    assert result.all_outcomes() == []


POOL_LOGGING_SCRIPT = '''
import logging
import multiprocessing
import sys
from pathlib import Path

from asset_squisher.core.config import JobConfig
from asset_squisher.processing.pipeline import process_batch
from asset_squisher.utils.logging import setup_logging

if __name__ == "__main__":
    multiprocessing.set_start_method("forkserver", force=True)
    setup_logging(logging.INFO)
    source, output = Path(sys.argv[1]), Path(sys.argv[2])
    result = process_batch(JobConfig(input_dir=source, output_dir=output, max_workers=2))
    sys.exit(result.exit_code)
'''


@pytest.mark.skipif("forkserver" not in multiprocessing.get_all_start_methods(), reason="当前平台不支持 forkserver")
def test_pool_workers_log_each_file_under_forkserver(tmp_path: Path) -> None:
    source = tmp_path / "input"
    _populate_generic(source)
    script = tmp_path / "run_pool.py"
    script.write_text(POOL_LOGGING_SCRIPT, encoding="utf-8")

    env = dict(os.environ)
    src_dir = str(Path(__file__).resolve().parents[1] / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_dir, env.get("PYTHONPATH")]))
    env["PYTHONIOENCODING"] = "utf-8"

    completed = subprocess.run(
        [sys.executable, str(script), str(source), str(tmp_path / "output")],
        capture_output=True,
        env=env,
        timeout=120,
    )

    stderr = completed.stderr.decode("utf-8")
    assert completed.returncode == 0, stderr
    assert stderr.count("开始处理") == 3
    assert stderr.count("耗时") == 3


def test_decompression_bomb_is_a_decode_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "input"
    source.mkdir()
    Image.new("RGB", (100, 100), "white").save(source / "huge.png")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    result = process_batch(make_config(source, tmp_path / "output"))

    assert [o.status for o in result.failed] == ["error-decode"]
    assert result.failed[0].elapsed > 0


def test_trailing_dot_name_is_compressed_as_generic(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    (source / "archive.").write_bytes(b"payload" * 32)

    result = process_batch(make_config(source, tmp_path / "output"))

    assert [o.status for o in result.succeeded] == ["processed"]
    assert (tmp_path / "output" / "archive..br").exists()
    assert (tmp_path / "output" / "archive.").read_bytes() == b"payload" * 32
