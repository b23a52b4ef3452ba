import json
import logging

from blobtrace.core.logger import BlobLogger, LogComponent, get_logger, set_logger


def test_step_records_entry() -> None:
    logger = BlobLogger()
    logger.step(LogComponent.TRACING, "Traced 3 blobs", blobs=3)

    assert len(logger.entries) == 1
    entry = logger.entries[0]
    assert entry.level == "INFO"
    assert entry.component == "TRACING"
    assert entry.data == {"blobs": 3}
    assert json.loads(entry.to_json())["message"] == "Traced 3 blobs"


def test_warning_and_error_update_metrics() -> None:
    logger = BlobLogger()
    logger.warning(LogComponent.REGISTRY, "Replacing custom feature", name="x")
    logger.error(LogComponent.TRACING, "Inner contour without owning blob", exception=RuntimeError("boom"))

    summary = logger.get_metrics_summary()
    assert summary["warning_count"] == 1
    assert summary["error_count"] == 1
    errors = logger.entries_for(LogComponent.TRACING, level="ERROR")
    assert errors[0].data["exception_type"] == "RuntimeError"


def test_timed_step_collects_duration() -> None:
    logger = BlobLogger()
    with logger.timed_step(LogComponent.FILTERING, "Filtering"):
        pass

    assert logger.metrics.filtering_time_ms >= 0.0
    assert "filtering" in logger.metrics.step_durations
    assert logger.entries[-1].duration_ms is not None


def test_entries_forwarded_to_standard_logging(caplog) -> None:
    logger = BlobLogger()
    with caplog.at_level(logging.INFO, logger="blobtrace"):
        logger.step(LogComponent.FEATURES, "Building feature table", blobs=2)

    assert any(r.name == "blobtrace.features" and "Building feature table" in r.getMessage() for r in caplog.records)


def test_json_log_file(tmp_path) -> None:
    path = tmp_path / "logs" / "run.jsonl"
    logger = BlobLogger(log_file=str(path), json_log=True)
    logger.step(LogComponent.IO, "Loaded raster", width=5)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["data"] == {"width": 5}


def test_max_entries_and_clear() -> None:
    logger = BlobLogger(max_entries=3)
    for i in range(5):
        logger.step(LogComponent.TRACING, f"step {i}")

    assert [e.message for e in logger.entries] == ["step 2", "step 3", "step 4"]
    logger.clear()
    assert logger.entries == []


def test_global_logger() -> None:
    logger = BlobLogger()
    set_logger(logger)
    assert get_logger() is logger
