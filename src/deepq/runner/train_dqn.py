"""DQN training loop.

The replay buffer and the environment adapter are stateful Python
objects, so the outer loop is a plain ``while``; action selection and
learning updates are jitted.  Each agent step:

1. reset the adapter if no episode is running,
2. pick an epsilon-greedy action from the online network,
3. step the adapter (frame skip happens inside it),
4. clip the reward to ``[-1, 1]`` and store the transition,
5. once the buffer holds ``warmup_size`` transitions, sample a
   minibatch and run one learning update,
6. every ``target_sync_interval`` updates, copy online -> target.

Usage::

    from deepq.algorithms.dqn import DQNConfig
    from deepq.env import make_adapter
    from deepq.runner import RunnerConfig, train_dqn

    adapter = make_adapter("Catch-v0", seed=0)
    result = train_dqn(
        adapter,
        dqn_config=DQNConfig(),
        runner_config=RunnerConfig(total_steps_budget=50_000),
    )
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Callable
from typing import Any, NamedTuple

import jax.numpy as jnp
import numpy as np

from deepq.algorithms.dqn.agent import DQN, DQNMetrics
from deepq.algorithms.dqn.config import DQNConfig
from deepq.algorithms.dqn.types import DQNState
from deepq.checkpoint import CheckpointSink, EqxCheckpointSink
from deepq.dataprotocol.replay_buffer import ReplayBuffer
from deepq.env.adapter import EnvironmentAdapter
from deepq.errors import ConfigError, EnvAdapterError, NumericInstabilityError
from deepq.metrics import MetricsSink, log_step_progress
from deepq.runner.config import RunnerConfig
from deepq.runner.evaluator import EvalMetrics, evaluate
from deepq.seeding import fold_in, make_rng, numpy_seed, split_keys

logger = logging.getLogger(__name__)


def clip_reward(reward: float, bound: float = 1.0) -> float:
    """Clip a scalar reward to ``[-bound, bound]``."""
    return float(np.clip(reward, -bound, bound))


class EpisodePhase(enum.Enum):
    """Where the trainer is within the current episode."""

    AWAITING_RESET = "awaiting_reset"
    STEPPING = "stepping"
    TERMINAL = "terminal"


class DQNTrainResult(NamedTuple):
    """Return value from ``train_dqn``."""

    agent_state: DQNState
    episode_returns: list[float]  # clipped, as seen by the learner
    raw_episode_returns: list[float]  # unclipped environment score
    metrics_log: list[dict[str, float]]
    global_step: int
    eval_log: list[dict[str, float]]


class DQNTrainer:
    """Stateful driver for one DQN training run.

    ``step()`` advances by exactly one agent step (one action, one
    adapter step, at most one learning update).  ``run()`` calls it until
    the step budget is spent.

    Args:
        adapter: Environment adapter used for training.  Its ``frame_skip`` (when
            it has one) must equal ``runner_config.frame_skip``, otherwise
            :class:`~deepq.errors.ConfigError` is raised.  Observations are
            stored in the adapter's ``obs_dtype`` (float32 if undeclared).
        dqn_config: Algorithm hyperparameters.
        runner_config: Budget, replay, logging and checkpoint settings.
        metrics_sink: Receives one record per finished episode.
        checkpoint_sink: Receives ``(global_step, agent_state)`` every
            ``checkpoint_interval`` steps and at the end.  When ``None``
            and ``runner_config.checkpoint_dir`` is set, an
            :class:`EqxCheckpointSink` is created there.
        eval_adapter: Separate adapter for periodic evaluation.  Required
            for ``runner_config.eval_every > 0`` to have any effect.
        callback: Optional ``callback(step, agent_state, record)`` called
            whenever a metrics record is logged.
    """

    def __init__(
        self,
        adapter: EnvironmentAdapter,
        *,
        dqn_config: DQNConfig,
        runner_config: RunnerConfig,
        metrics_sink: MetricsSink | None = None,
        checkpoint_sink: CheckpointSink | None = None,
        eval_adapter: EnvironmentAdapter | None = None,
        callback: Callable[[int, DQNState, dict[str, Any]], None] | None = None,
    ) -> None:
        if adapter.n_actions < 1:
            raise EnvAdapterError(f"adapter reports {adapter.n_actions} actions")
        adapter_skip = getattr(adapter, "frame_skip", runner_config.frame_skip)
        if adapter_skip != runner_config.frame_skip:
            raise ConfigError(
                f"adapter repeats actions {adapter_skip} times but "
                f"runner_config.frame_skip is {runner_config.frame_skip}"
            )

        self.adapter = adapter
        self.dqn_config = dqn_config
        self.runner_config = runner_config
        self.metrics_sink = metrics_sink
        self.eval_adapter = eval_adapter
        self.callback = callback

        if checkpoint_sink is None and runner_config.checkpoint_dir is not None:
            checkpoint_sink = EqxCheckpointSink(
                runner_config.checkpoint_dir, max_to_keep=runner_config.max_checkpoints,
            )
        self.checkpoint_sink = checkpoint_sink

        rng = make_rng(runner_config.seed)
        rng, agent_key, buffer_key = split_keys(rng, n=2)
        self._eval_rng = rng

        obs_shape = tuple(adapter.obs_shape)
        self.agent_state = DQN.init(agent_key, obs_shape, adapter.n_actions, dqn_config)
        # Replay keeps observations in the dtype the adapter hands out, so the
        # network sees identical inputs when acting and when learning.
        self._obs_dtype = np.dtype(getattr(adapter, "obs_dtype", np.float32))
        self.buffer = ReplayBuffer(
            runner_config.replay_capacity,
            obs_shape,
            obs_dtype=self._obs_dtype,
            seed=numpy_seed(buffer_key),
        )

        self.phase = EpisodePhase.AWAITING_RESET
        self.global_step = 0
        self.episode_index = -1
        self.episode_returns: list[float] = []
        self.raw_episode_returns: list[float] = []
        self.metrics_log: list[dict[str, float]] = []
        self.eval_log: list[dict[str, float]] = []

        self._obs: np.ndarray | None = None
        self._ep_return = 0.0
        self._ep_raw_return = 0.0
        self._ep_length = 0
        self._last_metrics: DQNMetrics | None = None
        self._last_saved_step: int | None = None

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def run(self) -> DQNTrainResult:
        """Step until ``total_steps_budget`` agent steps have been taken."""
        budget = self.runner_config.total_steps_budget
        logger.info(
            "Training DQN for %d steps (%d actions, obs %s)",
            budget, self.adapter.n_actions, self.adapter.obs_shape,
        )
        while self.global_step < budget:
            self.step()

        if self.checkpoint_sink is not None and self._last_saved_step != self.global_step:
            self._save_checkpoint()

        logger.info(
            "Finished %d steps, %d episodes, %d updates",
            self.global_step, len(self.episode_returns), int(self.agent_state.step),
        )
        return self.result()

    def step(self) -> None:
        """Advance by one agent step."""
        if self.phase is EpisodePhase.AWAITING_RESET:
            self._begin_episode()

        cfg = self.dqn_config
        action, self.agent_state = DQN.act(
            self.agent_state, jnp.asarray(self._obs), self.global_step, config=cfg,
        )
        action = int(action)

        try:
            next_obs, raw_reward, done, _info = self.adapter.step(action)
            next_obs = self._as_stored(next_obs)
        except EnvAdapterError:
            # The episode cannot continue; the next step() starts a new one.
            self.phase = EpisodePhase.AWAITING_RESET
            logger.error(
                "Environment failed in episode %d at step %d",
                self.episode_index, self.global_step,
            )
            raise

        reward = clip_reward(raw_reward)
        self.buffer.push(self._obs, action, reward, next_obs, done)
        self._ep_return += reward
        self._ep_raw_return += raw_reward
        self._ep_length += 1
        self._obs = next_obs

        if len(self.buffer) >= self.runner_config.warmup_size:
            self._learn()

        self.global_step += 1
        if done:
            self.phase = EpisodePhase.TERMINAL
            self._finish_episode()

        self._periodic()

    def result(self) -> DQNTrainResult:
        return DQNTrainResult(
            agent_state=self.agent_state,
            episode_returns=list(self.episode_returns),
            raw_episode_returns=list(self.raw_episode_returns),
            metrics_log=list(self.metrics_log),
            global_step=self.global_step,
            eval_log=list(self.eval_log),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_episode(self) -> None:
        self._obs = self._as_stored(self.adapter.reset())
        self.episode_index += 1
        self._ep_return = 0.0
        self._ep_raw_return = 0.0
        self._ep_length = 0
        self.phase = EpisodePhase.STEPPING

    def _as_stored(self, obs: Any) -> np.ndarray:
        obs = np.asarray(obs)
        if not np.can_cast(obs.dtype, self._obs_dtype, casting="same_kind"):
            raise EnvAdapterError(
                f"observation dtype {obs.dtype} cannot be stored as {self._obs_dtype}"
            )
        return obs.astype(self._obs_dtype, copy=False)

    def _learn(self) -> None:
        cfg = self.dqn_config
        if not self.buffer.can_sample(cfg.batch_size):
            return

        batch = self.buffer.sample(cfg.batch_size)
        self.agent_state, metrics = DQN.learn(self.agent_state, batch, config=cfg)
        update_count = int(self.agent_state.step)

        loss = float(metrics.loss)
        if not math.isfinite(loss) or not bool(DQN.params_finite(self.agent_state.params)):
            raise NumericInstabilityError(
                f"non-finite loss ({loss}) or parameters after update {update_count}",
                update_step=update_count,
            )
        self._last_metrics = metrics

        if DQN.should_sync(update_count, cfg):
            self.agent_state = DQN.sync_target(self.agent_state)
            logger.debug("Target network synced at update %d", update_count)

    def _finish_episode(self) -> None:
        self.episode_returns.append(self._ep_return)
        self.raw_episode_returns.append(self._ep_raw_return)
        epsilon = float(DQN.epsilon(self.global_step, self.dqn_config))
        loss = None if self._last_metrics is None else float(self._last_metrics.loss)

        if self.metrics_sink is not None:
            self.metrics_sink.record(
                self.episode_index, self._ep_raw_return, loss, epsilon, self.global_step,
            )
        logger.debug(
            "Episode %d: return=%.3f length=%d epsilon=%.3f",
            self.episode_index, self._ep_raw_return, self._ep_length, epsilon,
        )
        self.phase = EpisodePhase.AWAITING_RESET

    def _periodic(self) -> None:
        rc = self.runner_config
        step = self.global_step

        if step % rc.log_interval == 0 and self._last_metrics is not None:
            m = self._last_metrics
            record = {
                "step": step,
                "loss": float(m.loss),
                "q_mean": float(m.q_mean),
                "td_abs_mean": float(m.td_abs_mean),
                "grad_norm": float(m.grad_norm),
                "epsilon": float(DQN.epsilon(step, self.dqn_config)),
                "episodes": len(self.episode_returns),
            }
            self.metrics_log.append(record)
            log_step_progress(step, rc.total_steps_budget, record)
            if self.callback is not None:
                self.callback(step, self.agent_state, record)

        if rc.eval_every > 0 and self.eval_adapter is not None and step % rc.eval_every == 0:
            metrics = self._evaluate()
            self.eval_log.append({"step": step, **metrics._asdict()})
            logger.info(
                "Eval at step %d: return=%.3f +/- %.3f length=%.1f",
                step, metrics.mean_return, metrics.std_return, metrics.mean_length,
            )

        if self.checkpoint_sink is not None and step % rc.checkpoint_interval == 0:
            self._save_checkpoint()

    def _evaluate(self) -> EvalMetrics:
        rc = self.runner_config
        return evaluate(
            self.eval_adapter,
            self.agent_state,
            config=self.dqn_config,
            n_episodes=rc.eval_episodes,
            max_steps=rc.eval_max_steps,
            rng=fold_in(self._eval_rng, self.global_step),
        )

    def _save_checkpoint(self) -> None:
        self.checkpoint_sink.save(self.global_step, self.agent_state)
        self._last_saved_step = self.global_step


def train_dqn(
    adapter: EnvironmentAdapter,
    *,
    dqn_config: DQNConfig,
    runner_config: RunnerConfig,
    metrics_sink: MetricsSink | None = None,
    checkpoint_sink: CheckpointSink | None = None,
    eval_adapter: EnvironmentAdapter | None = None,
    callback: Callable[[int, DQNState, dict[str, Any]], None] | None = None,
) -> DQNTrainResult:
    """Train DQN on *adapter* for ``runner_config.total_steps_budget`` steps.

    Returns:
        ``DQNTrainResult`` with the final agent state, per-episode clipped
        and raw returns, the periodic metrics log and evaluation log.

    Raises:
        EnvAdapterError: the adapter produced an invalid observation or
            reward, or was misused.
        NumericInstabilityError: a learning update produced a non-finite
            loss or parameters.
    """
    trainer = DQNTrainer(
        adapter,
        dqn_config=dqn_config,
        runner_config=runner_config,
        metrics_sink=metrics_sink,
        checkpoint_sink=checkpoint_sink,
        eval_adapter=eval_adapter,
        callback=callback,
    )
    return trainer.run()
