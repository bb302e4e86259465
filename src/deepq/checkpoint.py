"""Equinox-serialisation checkpoints for DQN states.

``save_eqx`` / ``load_eqx`` are one-shot helpers for any pytree
(``DQNState``, Equinox models, optax states).  ``EqxCheckpointSink``
is the periodic sink the training loop calls; it writes
``step_<n>.eqx`` files and keeps only the most recent ones.

Usage::

    from deepq.checkpoint import EqxCheckpointSink

    sink = EqxCheckpointSink("runs/catch/checkpoints", max_to_keep=3)
    sink.save(10_000, agent_state)
    restored = sink.restore_latest(like=fresh_state)

Restoring needs a template of the same structure, typically a freshly
initialised state built with the same config.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Protocol, TypeVar

import equinox as eqx

T = TypeVar("T")

logger = logging.getLogger(__name__)

_STEP_RE = re.compile(r"^step_(\d+)\.eqx$")


class CheckpointSink(Protocol):
    """Receives training state snapshots keyed by global step."""

    def save(self, step: int, state: Any) -> None: ...


def save_eqx(path: str | Path, pytree: Any) -> Path:
    """Serialise *pytree* leaves to *path* (conventionally ``*.eqx``)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    eqx.tree_serialise_leaves(str(p), pytree)
    return p


def load_eqx(path: str | Path, like: T) -> T:
    """Load a pytree saved with :func:`save_eqx`.

    *like* must have the same structure (shapes, dtypes) as the saved
    data.
    """
    return eqx.tree_deserialise_leaves(str(path), like)


class EqxCheckpointSink:
    """Rotating ``step_<n>.eqx`` checkpoints in one directory.

    Parameters
    ----------
    directory:
        Where checkpoint files are written (created if missing).
    max_to_keep:
        Number of most recent checkpoints retained.  ``None`` keeps all.
    """

    def __init__(self, directory: str | Path, max_to_keep: int | None = 5) -> None:
        if max_to_keep is not None and max_to_keep < 1:
            raise ValueError(f"max_to_keep must be >= 1 or None, got {max_to_keep}")
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self.max_to_keep = max_to_keep

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, step: int) -> Path:
        return self._dir / f"step_{step}.eqx"

    def save(self, step: int, state: Any) -> None:
        path = save_eqx(self.path_for(step), state)
        logger.info("Saved checkpoint %s", path)
        self._rotate()

    def all_steps(self) -> list[int]:
        """Steps with a checkpoint on disk, ascending."""
        steps = []
        for p in self._dir.iterdir():
            m = _STEP_RE.match(p.name)
            if m:
                steps.append(int(m.group(1)))
        return sorted(steps)

    def latest_step(self) -> int | None:
        steps = self.all_steps()
        return steps[-1] if steps else None

    def restore(self, step: int, like: T) -> T:
        return load_eqx(self.path_for(step), like)

    def restore_latest(self, like: T) -> T:
        step = self.latest_step()
        if step is None:
            raise FileNotFoundError(f"No checkpoints in {self._dir}")
        return self.restore(step, like)

    def _rotate(self) -> None:
        if self.max_to_keep is None:
            return
        for step in self.all_steps()[: -self.max_to_keep]:
            self.path_for(step).unlink()
            logger.debug("Removed old checkpoint step_%d", step)

    def __repr__(self) -> str:
        return f"EqxCheckpointSink({self._dir}, max_to_keep={self.max_to_keep})"
