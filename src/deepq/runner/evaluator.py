"""Low-epsilon evaluation episodes on an environment adapter.

Evaluation never touches the replay buffer or the training adapter, so
it can run in the middle of a training episode.  Actions use
``DQNConfig.epsilon_eval`` (0.0 = purely greedy; the Nature DQN used
0.05).

Usage::

    metrics = evaluate(
        eval_adapter, agent_state,
        config=dqn_config, n_episodes=10, max_steps=1_000,
        rng=jax.random.PRNGKey(99),
    )
    # metrics.mean_return, metrics.std_return, metrics.mean_length
"""

from __future__ import annotations

from typing import NamedTuple

import chex
import jax.numpy as jnp
import numpy as np

from deepq.algorithms.dqn.agent import DQN
from deepq.algorithms.dqn.config import DQNConfig
from deepq.algorithms.dqn.types import DQNState
from deepq.env.adapter import EnvironmentAdapter


class EvalMetrics(NamedTuple):
    """Aggregated evaluation results (raw, unclipped rewards)."""

    mean_return: float
    std_return: float
    mean_length: float


def evaluate(
    adapter: EnvironmentAdapter,
    agent_state: DQNState,
    *,
    config: DQNConfig,
    n_episodes: int,
    max_steps: int,
    rng: chex.PRNGKey,
) -> EvalMetrics:
    """Run *n_episodes* episodes of at most *max_steps* agent steps each.

    The caller's ``agent_state`` is not modified; *rng* replaces its key
    for the duration of the evaluation.
    """
    state = agent_state._replace(rng=rng)
    returns: list[float] = []
    lengths: list[int] = []

    for _ in range(n_episodes):
        obs = adapter.reset()
        total = 0.0
        length = 0
        done = False
        while not done and length < max_steps:
            action, state = DQN.act(state, jnp.asarray(obs), 0, config=config, explore=False)
            obs, reward, done, _info = adapter.step(int(action))
            total += reward
            length += 1
        returns.append(total)
        lengths.append(length)

    return EvalMetrics(
        mean_return=float(np.mean(returns)),
        std_return=float(np.std(returns)),
        mean_length=float(np.mean(lengths)),
    )
