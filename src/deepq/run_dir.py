"""On-disk layout of one training run.

::

    runs/catch_dqn_20261019_143022/
        config.json           TrainConfig snapshot
        checkpoints/          step_<n>.eqx files written by EqxCheckpointSink
        logs/                 episodes.jsonl, metrics.jsonl

``scripts/train.py`` creates one per invocation; nothing else in the
package depends on it.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


class RunDir:
    """Creates ``<base_dir>/<run_id>/{checkpoints,logs}`` on construction.

    Without an explicit *run_id* the directory is named
    ``<experiment_name>_<UTC timestamp>``.
    """

    def __init__(
        self,
        experiment_name: str = "default",
        base_dir: str | Path = "runs",
        *,
        run_id: str | None = None,
    ) -> None:
        if run_id is None:
            run_id = f"{experiment_name}_{datetime.now(tz=UTC):%Y%m%d_%H%M%S}"
        self._root = Path(base_dir) / run_id
        self.checkpoints.mkdir(parents=True, exist_ok=True)
        self.logs.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def checkpoints(self) -> Path:
        return self._root / "checkpoints"

    @property
    def logs(self) -> Path:
        return self._root / "logs"

    def log_path(self, filename: str = "metrics.jsonl") -> Path:
        return self.logs / filename

    def save_config(self, config: Any, filename: str = "config.json") -> Path:
        """Write a dataclass or dict as indented JSON under the run root."""
        if dataclasses.is_dataclass(config) and not isinstance(config, type):
            payload = dataclasses.asdict(config)
        elif isinstance(config, dict):
            payload = config
        else:
            raise TypeError(f"Cannot serialize config of type {type(config).__name__}")
        path = self._root / filename
        path.write_text(json.dumps(payload, indent=2, default=str) + "\n")
        return path

    def load_config(self, filename: str = "config.json") -> dict[str, Any]:
        return json.loads((self._root / filename).read_text())

    def __repr__(self) -> str:
        return f"RunDir({self._root})"

    def __str__(self) -> str:
        return str(self._root)
