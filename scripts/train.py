#!/usr/bin/env python3
"""Training script with preset selection.

Select a preset configuration and optionally override any field::

    python scripts/train.py catch_dqn
    python scripts/train.py catch_dqn --dqn.lr 5e-4
    python scripts/train.py pixel_gridworld_dqn --runner.total_steps_budget 500000
    python scripts/train.py catch_dqn --help
"""

from __future__ import annotations

import dataclasses

from deepq.configs import TrainConfig, build_adapter, cli
from deepq.metrics import JsonlMetricsSink, MetricsLogger, setup_logging
from deepq.run_dir import RunDir
from deepq.runner import train_dqn


def main(config: TrainConfig) -> None:
    setup_logging()

    run_dir = RunDir(f"{config.env_id}_dqn")
    runner_config = dataclasses.replace(
        config.runner, checkpoint_dir=str(run_dir.checkpoints),
    )
    run_dir.save_config(dataclasses.replace(config, runner=runner_config))
    print(f"Run directory: {run_dir.root}")

    adapter = build_adapter(config)
    eval_adapter = build_adapter(config, seed_offset=10_000)

    with JsonlMetricsSink(run_dir.log_path("episodes.jsonl")) as sink, \
            MetricsLogger(run_dir.log_path("metrics.jsonl")) as step_log:
        result = train_dqn(
            adapter,
            dqn_config=config.dqn,
            runner_config=runner_config,
            metrics_sink=sink,
            eval_adapter=eval_adapter,
            callback=lambda step, state, record: step_log.write(record),
        )

    n_episodes = len(result.raw_episode_returns)
    last_returns = result.raw_episode_returns[-10:]
    mean_return = sum(last_returns) / len(last_returns) if last_returns else 0.0
    print(
        f"Training complete | "
        f"episodes={n_episodes} | "
        f"mean_return(last 10)={mean_return:.2f}"
    )
    if result.eval_log:
        print(f"Final eval return: {result.eval_log[-1]['mean_return']:.2f}")
    print(f"Metrics: {run_dir.logs}")


if __name__ == "__main__":
    main(cli())
