"""Preset experiment configurations.

Each preset bundles an environment, its preprocessing, the DQN
hyperparameters and runner settings.  Use :func:`cli` in a training
script to get a :class:`TrainConfig` with ``overridable_config_cli``:
the user picks a preset and optionally overrides individual fields::

    python scripts/train.py catch_dqn --dqn.lr 1e-3
    python scripts/train.py pixel_gridworld_dqn --runner.total_steps_budget 500000
"""

from __future__ import annotations

from dataclasses import dataclass, field

import tyro

from deepq.algorithms.dqn.config import DQNConfig
from deepq.env import make_adapter
from deepq.env.adapter import JaxEnvAdapter
from deepq.runner.config import RunnerConfig

# ---------------------------------------------------------------------------
# Unified training config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrainConfig:
    """Full training configuration: environment, algorithm and runner."""

    # Environment
    env_id: str = "Catch-v0"
    grayscale: bool = False
    frame_stack: int = 0  # 0 or 1 = no stacking

    # Algorithm
    dqn: DQNConfig = field(default_factory=DQNConfig)

    # Runner / outer-loop settings
    runner: RunnerConfig = field(default_factory=RunnerConfig)


def build_adapter(config: TrainConfig, *, seed_offset: int = 0) -> JaxEnvAdapter:
    """Create the environment adapter described by *config*.

    *seed_offset* lets an evaluation adapter use a different stream from
    the training adapter.
    """
    return make_adapter(
        config.env_id,
        frame_skip=config.runner.frame_skip,
        seed=config.runner.seed + seed_offset,
        grayscale=config.grayscale,
        frame_stack=config.frame_stack,
    )


# ---------------------------------------------------------------------------
# Preset registry
# ---------------------------------------------------------------------------

PRESETS: dict[str, tuple[str, TrainConfig]] = {
    "catch_dqn": (
        "DQN on Catch-v0 (10x5 pixel frame, fast sanity-check)",
        TrainConfig(
            env_id="Catch-v0",
            dqn=DQNConfig(
                cnn_channels=(16,),
                cnn_kernels=(3,),
                cnn_strides=(1,),
                cnn_hidden=64,
                optimizer="adam",
                lr=1e-3,
                target_sync_interval=500,
                epsilon_final=0.05,
                epsilon_decay_span=10_000,
            ),
            runner=RunnerConfig(
                total_steps_budget=30_000,
                replay_capacity=20_000,
                warmup_size=500,
                log_interval=1_000,
                eval_every=5_000,
                eval_episodes=20,
            ),
        ),
    ),
    "gridworld_dqn": (
        "DQN on GridWorld-v0 (coordinate observations, MLP)",
        TrainConfig(
            env_id="GridWorld-v0",
            dqn=DQNConfig(
                hidden_sizes=(64, 64),
                optimizer="adam",
                lr=5e-4,
                target_sync_interval=500,
                epsilon_decay_span=20_000,
            ),
            runner=RunnerConfig(
                total_steps_budget=50_000,
                replay_capacity=50_000,
                warmup_size=500,
                eval_every=5_000,
                eval_max_steps=100,
            ),
        ),
    ),
    "pixel_gridworld_dqn": (
        "Nature-style DQN on PixelGridWorld-v0 (grayscale, 4 stacked frames)",
        TrainConfig(
            env_id="PixelGridWorld-v0",
            grayscale=True,
            frame_stack=4,
            dqn=DQNConfig(
                target_sync_interval=1_000,
                epsilon_decay_span=100_000,
            ),
            runner=RunnerConfig(
                total_steps_budget=200_000,
                replay_capacity=100_000,
                warmup_size=5_000,
                eval_every=10_000,
                eval_max_steps=100,
            ),
        ),
    ),
}


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def cli(
    args: list[str] | None = None,
    **kwargs: object,
) -> TrainConfig:
    """Parse a preset + overrides from the command line.

    Usage::

        config = cli()                                   # parse sys.argv
        config = cli(["catch_dqn", "--dqn.lr", "1e-3"])  # explicit args
    """
    return tyro.extras.overridable_config_cli(
        PRESETS,
        args=args,
        use_underscores=True,
        **kwargs,  # type: ignore[arg-type]
    )
