"""Runner configuration."""

from __future__ import annotations

from dataclasses import dataclass

from deepq.errors import ConfigError


@dataclass(frozen=True)
class RunnerConfig:
    """Outer-loop settings for the DQN trainer.

    Algorithm hyperparameters live in ``DQNConfig``; everything about
    the budget, the replay store, frame skipping, evaluation, logging
    and checkpointing lives here.
    """

    # Training budget (agent steps, i.e. action selections)
    total_steps_budget: int = 100_000

    # Replay store
    replay_capacity: int = 100_000
    warmup_size: int = 1_000

    # Action repeat applied by the environment adapter
    frame_skip: int = 1

    # Seeding
    seed: int = 0

    # Logging
    log_interval: int = 1_000

    # Evaluation (0 disables)
    eval_every: int = 0
    eval_episodes: int = 10
    eval_max_steps: int = 1_000

    # Checkpointing
    checkpoint_dir: str | None = None  # None = no checkpointing
    checkpoint_interval: int = 10_000
    max_checkpoints: int = 5

    def __post_init__(self) -> None:
        positive = (
            "total_steps_budget",
            "replay_capacity",
            "warmup_size",
            "frame_skip",
            "log_interval",
            "eval_episodes",
            "eval_max_steps",
            "checkpoint_interval",
            "max_checkpoints",
        )
        for name in positive:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.eval_every < 0:
            raise ConfigError(f"eval_every must be >= 0, got {self.eval_every}")
        if self.warmup_size > self.replay_capacity:
            raise ConfigError(
                f"warmup_size ({self.warmup_size}) exceeds replay_capacity "
                f"({self.replay_capacity}); learning would never start"
            )
