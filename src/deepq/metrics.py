"""Episode sinks, JSONL metric files and console logging.

The trainer reports each finished episode through :class:`MetricsSink`.
Sinks are fire-and-forget: the loop never reads anything back from them.
Periodic learner statistics go to the ``deepq`` logger and, if the
caller wires one up, to a :class:`MetricsLogger` file.

Usage::

    from deepq.metrics import JsonlMetricsSink, setup_logging

    setup_logging()
    with JsonlMetricsSink("runs/catch/logs/episodes.jsonl") as sink:
        train_dqn(adapter, dqn_config=..., runner_config=..., metrics_sink=sink)
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import IO, Any, NamedTuple, Protocol

import jax.numpy as jnp
import numpy as np

LOGGER_NAME = "deepq"


class EpisodeRecord(NamedTuple):
    episode_index: int
    total_reward: float
    loss: float | None  # None until the first learning update
    epsilon: float
    global_step: int


class MetricsSink(Protocol):
    def record(
        self,
        episode_index: int,
        total_reward: float,
        loss: float | None,
        epsilon: float,
        global_step: int,
    ) -> None: ...


class ListMetricsSink:
    """Keeps every :class:`EpisodeRecord` in memory."""

    def __init__(self) -> None:
        self.records: list[EpisodeRecord] = []

    def record(
        self,
        episode_index: int,
        total_reward: float,
        loss: float | None,
        epsilon: float,
        global_step: int,
    ) -> None:
        self.records.append(
            EpisodeRecord(episode_index, total_reward, loss, epsilon, global_step)
        )

    def __len__(self) -> int:
        return len(self.records)


class JsonlMetricsSink:
    """Appends one JSON line per episode to *path*."""

    def __init__(self, path: str | Path) -> None:
        self._out = MetricsLogger(path)

    @property
    def path(self) -> Path:
        return self._out.path

    def record(
        self,
        episode_index: int,
        total_reward: float,
        loss: float | None,
        epsilon: float,
        global_step: int,
    ) -> None:
        self._out.write(
            {
                "episode": episode_index,
                "step": global_step,
                "total_reward": total_reward,
                "loss": loss,
                "epsilon": epsilon,
            }
        )

    def close(self) -> None:
        self._out.close()

    def __enter__(self) -> JsonlMetricsSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Console logging
# ---------------------------------------------------------------------------


class _CompactFormatter(logging.Formatter):
    """``<L> <date> <time>.<ms> [<logger>] <message>``, e.g.::

        I 2026-10-19 14:30:22.123 [deepq.runner.train_dqn] Training DQN for 30000 steps
    """

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname[:1] if record.levelname else "?"
        stamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        return f"{level} {stamp}.{int(record.msecs):03d} [{record.name}] {record.getMessage()}"


def setup_logging(level: int = logging.INFO) -> None:
    """Route the ``deepq`` logger to stderr with compact formatting.

    Calling it again replaces the handler instead of adding another.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(_CompactFormatter())
    logger.addHandler(handler)
    logger.propagate = False


def log_step_progress(
    step: int,
    total_steps: int,
    metrics: dict[str, Any] | None = None,
    logger_name: str = LOGGER_NAME,
) -> None:
    """Log ``step N/T (P%) | k=v ...`` at INFO level.

    ``step`` and ``wall_time`` keys in *metrics* are skipped; floats are
    printed with 4 significant digits.
    """
    pct = 100.0 * step / total_steps if total_steps > 0 else 0.0
    line = f"step {step}/{total_steps} ({pct:.1f}%)"
    fields = []
    for key, value in (metrics or {}).items():
        if key in ("step", "wall_time"):
            continue
        value = _to_python(value)
        fields.append(f"{key}={value:.4g}" if isinstance(value, float) else f"{key}={value}")
    if fields:
        line += " | " + " ".join(fields)
    logging.getLogger(logger_name).info(line)


# ---------------------------------------------------------------------------
# JSONL files
# ---------------------------------------------------------------------------


class MetricsLogger:
    """Line-buffered JSONL writer; each ``write`` becomes one flushed line.

    Rows are self-describing, so different writes may carry different
    keys.  A ``wall_time`` field (seconds since the logger was opened) is
    added unless the row already has one.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: IO[str] = self._path.open("a")
        self._t0 = time.monotonic()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, row: dict[str, Any]) -> None:
        out = {key: _to_python(value) for key, value in row.items()}
        out.setdefault("wall_time", round(time.monotonic() - self._t0, 3))
        self._fh.write(json.dumps(out, default=str) + "\n")
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()

    def __enter__(self) -> MetricsLogger:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MetricsLogger({self._path})"


def read_metrics(path: str | Path) -> list[dict[str, Any]]:
    """All rows of a JSONL file, or ``[]`` if it does not exist."""
    p = Path(path)
    if not p.exists():
        return []
    with p.open() as fh:
        return [json.loads(line) for line in fh if line.strip()]


def _to_python(value: Any) -> Any:
    if isinstance(value, (jnp.ndarray, np.ndarray, np.generic)):
        return value.item()
    return value
