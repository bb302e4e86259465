"""Tests for deepq.metrics."""

from __future__ import annotations

import logging
from pathlib import Path

import jax.numpy as jnp
import numpy as np

from deepq.metrics import (
    EpisodeRecord,
    JsonlMetricsSink,
    ListMetricsSink,
    MetricsLogger,
    MetricsSink,
    log_step_progress,
    read_metrics,
    setup_logging,
)


class TestMetricsLogger:
    def test_write_and_read(self, tmp_path: Path) -> None:
        path = tmp_path / "metrics.jsonl"
        with MetricsLogger(path) as logger:
            logger.write({"step": 100, "loss": 0.5})
            logger.write({"step": 200, "loss": 0.3, "q_mean": 4.2})

        records = read_metrics(path)
        assert len(records) == 2
        assert records[0]["step"] == 100
        assert records[0]["loss"] == 0.5
        assert records[1]["q_mean"] == 4.2

    def test_auto_wall_time(self, tmp_path: Path) -> None:
        path = tmp_path / "metrics.jsonl"
        with MetricsLogger(path) as logger:
            logger.write({"step": 1})
        assert isinstance(read_metrics(path)[0]["wall_time"], float)

    def test_explicit_wall_time_not_overwritten(self, tmp_path: Path) -> None:
        path = tmp_path / "metrics.jsonl"
        with MetricsLogger(path) as logger:
            logger.write({"step": 1, "wall_time": 99.9})
        assert read_metrics(path)[0]["wall_time"] == 99.9

    def test_array_scalar_conversion(self, tmp_path: Path) -> None:
        path = tmp_path / "metrics.jsonl"
        with MetricsLogger(path) as logger:
            logger.write({"loss": jnp.float32(0.42), "step": np.int64(7), "done": np.bool_(True)})
        record = read_metrics(path)[0]
        assert isinstance(record["loss"], float)
        assert record["step"] == 7
        assert record["done"] is True

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "metrics.jsonl"
        with MetricsLogger(path) as logger:
            logger.write({"step": 1})
        assert path.exists()

    def test_read_missing_file(self, tmp_path: Path) -> None:
        assert read_metrics(tmp_path / "nope.jsonl") == []


class TestEpisodeSinks:
    def test_list_sink(self) -> None:
        sink = ListMetricsSink()
        sink.record(0, 3.0, None, 1.0, 10)
        sink.record(1, -2.0, 0.25, 0.9, 25)
        assert len(sink) == 2
        assert sink.records[1] == EpisodeRecord(1, -2.0, 0.25, 0.9, 25)
        assert isinstance(sink, ListMetricsSink)

    def test_jsonl_sink(self, tmp_path: Path) -> None:
        path = tmp_path / "episodes.jsonl"
        with JsonlMetricsSink(path) as sink:
            sink.record(0, 21.0, None, 1.0, 900)
            sink.record(1, 18.0, 0.031, 0.95, 1_800)
        assert sink.path == path

        records = read_metrics(path)
        assert [r["episode"] for r in records] == [0, 1]
        assert records[0]["loss"] is None
        assert records[1]["total_reward"] == 18.0
        assert records[1]["epsilon"] == 0.95
        assert records[1]["step"] == 1_800

    def test_sinks_match_protocol(self, tmp_path: Path) -> None:
        sinks: list[MetricsSink] = [ListMetricsSink(), JsonlMetricsSink(tmp_path / "e.jsonl")]
        for sink in sinks:
            sink.record(0, 1.0, None, 0.5, 1)


class TestConsoleLogging:
    def test_setup_logging_idempotent(self) -> None:
        setup_logging()
        setup_logging(logging.DEBUG)
        logger = logging.getLogger("deepq")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_formatter_output(self) -> None:
        setup_logging()
        handler = logging.getLogger("deepq").handlers[0]
        record = logging.LogRecord("deepq.runner", logging.INFO, "", 0, "hello %d", (3,), None)
        line = handler.formatter.format(record)
        assert line.startswith("I ")
        assert line.endswith("[deepq.runner] hello 3")

    def test_log_step_progress(self, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="progress_test"):
            log_step_progress(
                500, 1_000, {"step": 500, "loss": 0.125, "episodes": 3},
                logger_name="progress_test",
            )
        message = caplog.records[-1].getMessage()
        assert message.startswith("step 500/1000 (50.0%)")
        assert "loss=0.125" in message
        assert "episodes=3" in message
        assert "step=500" not in message
