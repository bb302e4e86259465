"""Train DQN on Catch and report greedy evaluation returns."""

import jax

from deepq.algorithms.dqn import DQNConfig
from deepq.env import make_adapter
from deepq.metrics import ListMetricsSink, setup_logging
from deepq.runner import RunnerConfig, evaluate, train_dqn


def main() -> None:
    setup_logging()

    dqn_config = DQNConfig(
        cnn_channels=(16,),
        cnn_kernels=(3,),
        cnn_strides=(1,),
        cnn_hidden=64,
        optimizer="adam",
        lr=1e-3,
        target_sync_interval=500,
        epsilon_final=0.05,
        epsilon_decay_span=10_000,
    )
    runner_config = RunnerConfig(
        total_steps_budget=20_000,
        replay_capacity=20_000,
        warmup_size=500,
        log_interval=2_000,
        seed=42,
    )

    sink = ListMetricsSink()
    result = train_dqn(
        make_adapter("Catch-v0", seed=42),
        dqn_config=dqn_config,
        runner_config=runner_config,
        metrics_sink=sink,
    )

    metrics = evaluate(
        make_adapter("Catch-v0", seed=7),
        result.agent_state,
        config=dqn_config,
        n_episodes=50,
        max_steps=20,
        rng=jax.random.PRNGKey(0),
    )
    print(f"Episodes trained: {len(sink)}")
    print(f"Greedy eval return: {metrics.mean_return:.2f} +/- {metrics.std_return:.2f}")


if __name__ == "__main__":
    main()
