"""Stateful environment adapters consumed by the training loop.

The trainer only needs four things from an environment::

    obs = adapter.reset()
    obs, reward, done, info = adapter.step(action)
    adapter.n_actions, adapter.obs_shape

Adapters repeat each chosen action for ``frame_skip`` frames (summing
the reward and keeping the last observation, stopping early on a
terminal frame) and validate everything they hand back.  A malformed
observation or reward raises :class:`~deepq.errors.EnvAdapterError`
rather than letting a corrupt state reach the replay buffer.

Two implementations ship with the package:

- :class:`JaxEnvAdapter` drives a pure-JAX :class:`~deepq.env.base.Environment`.
- :class:`GymnasiumAdapter` drives a Gymnasium environment (optional
  dependency, imported lazily).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import jax
import jax.numpy as jnp
import numpy as np

from deepq.env.base import Environment, EnvParams
from deepq.env.spaces import Discrete
from deepq.errors import EnvAdapterError
from deepq.seeding import make_rng, split_keys


@runtime_checkable
class EnvironmentAdapter(Protocol):
    """What the training loop requires from an environment."""

    @property
    def n_actions(self) -> int: ...

    @property
    def obs_shape(self) -> tuple[int, ...]: ...

    def reset(self) -> np.ndarray: ...

    def step(self, action: int) -> tuple[np.ndarray, float, bool, dict[str, Any]]: ...


class FrameSkipAdapter(ABC):
    """Frame-skip, validation and reset bookkeeping shared by adapters.

    Subclasses implement ``_reset_inner`` / ``_step_inner`` for a single
    underlying frame and expose ``n_actions`` / ``obs_shape``.
    """

    def __init__(self, *, frame_skip: int = 1) -> None:
        if frame_skip < 1:
            raise ValueError(f"frame_skip must be >= 1, got {frame_skip}")
        self.frame_skip = frame_skip
        self._needs_reset = True

    @property
    @abstractmethod
    def n_actions(self) -> int: ...

    @property
    @abstractmethod
    def obs_shape(self) -> tuple[int, ...]: ...

    @property
    def obs_dtype(self) -> np.dtype:
        """Dtype of the observations handed back; replay stores them as is."""
        return np.dtype(np.float32)

    @abstractmethod
    def _reset_inner(self) -> Any: ...

    @abstractmethod
    def _step_inner(self, action: int) -> tuple[Any, Any, bool, dict[str, Any]]: ...

    def reset(self) -> np.ndarray:
        obs = self._check_obs(self._reset_inner())
        self._needs_reset = False
        return obs

    def step(self, action: int) -> tuple[np.ndarray, float, bool, dict[str, Any]]:
        """Repeat *action* for up to ``frame_skip`` frames.

        Returns the last observation, the summed reward, the terminal
        flag and an info dict with ``frames`` (frames executed) and
        ``raw_rewards`` (per-frame rewards).
        """
        if self._needs_reset:
            raise EnvAdapterError("step() called before reset() or after a terminal step")
        action = int(action)
        if not 0 <= action < self.n_actions:
            raise EnvAdapterError(f"action {action} outside [0, {self.n_actions})")

        total = 0.0
        raw_rewards: list[float] = []
        done = False
        info: dict[str, Any] = {}
        for _ in range(self.frame_skip):
            obs, reward, done, info = self._step_inner(action)
            reward = self._check_reward(reward)
            raw_rewards.append(reward)
            total += reward
            if done:
                break

        obs = self._check_obs(obs)
        self._needs_reset = done
        info = {**info, "frames": len(raw_rewards), "raw_rewards": raw_rewards}
        return obs, total, done, info

    def _check_obs(self, obs: Any) -> np.ndarray:
        obs = np.asarray(obs)
        if obs.shape != self.obs_shape:
            raise EnvAdapterError(
                f"observation shape {obs.shape} does not match declared {self.obs_shape}"
            )
        if np.issubdtype(obs.dtype, np.floating) and not np.all(np.isfinite(obs)):
            raise EnvAdapterError("observation contains non-finite values")
        if not np.can_cast(obs.dtype, self.obs_dtype, casting="same_kind"):
            raise EnvAdapterError(
                f"observation dtype {obs.dtype} cannot be stored as declared {self.obs_dtype}"
            )
        return obs.astype(self.obs_dtype, copy=False)

    @staticmethod
    def _check_reward(reward: Any) -> float:
        if np.ndim(reward) != 0:
            raise EnvAdapterError(f"reward must be a scalar, got shape {np.shape(reward)}")
        value = float(reward)
        if not np.isfinite(value):
            raise EnvAdapterError(f"reward is not finite: {value}")
        return value


class JaxEnvAdapter(FrameSkipAdapter):
    """Drives a pure-JAX environment through a stateful interface.

    The PRNG key and environment state live on the adapter; ``reset`` and
    ``step`` are jitted once per adapter.

    Args:
        env: Pure-JAX environment (no auto-reset wrapper).
        params: Environment parameters, defaults to ``env.default_params()``.
        frame_skip: Frames each action is repeated for.
        seed: Seed for reset/step keys.
    """

    def __init__(
        self,
        env: Environment,
        params: EnvParams | None = None,
        *,
        frame_skip: int = 1,
        seed: int = 0,
    ) -> None:
        super().__init__(frame_skip=frame_skip)
        self.env = env
        self.params = params if params is not None else env.default_params()

        act_space = env.action_space(self.params)
        if not isinstance(act_space, Discrete):
            raise ValueError(f"{env.name} must have a Discrete action space, got {act_space}")
        self._n_actions = act_space.n
        self._obs_space = env.observation_space(self.params)
        self._obs_shape = tuple(self._obs_space.shape)

        self._rng = make_rng(seed)
        self._state = None
        self._reset_fn = jax.jit(env.reset)
        self._step_fn = jax.jit(env.step)

    @property
    def n_actions(self) -> int:
        return self._n_actions

    @property
    def obs_shape(self) -> tuple[int, ...]:
        return self._obs_shape

    @property
    def obs_dtype(self) -> np.dtype:
        return np.dtype(self._obs_space.dtype)

    def _check_obs(self, obs: Any) -> np.ndarray:
        obs = super()._check_obs(obs)
        if not bool(self._obs_space.contains(obs)):
            raise EnvAdapterError(f"observation outside {self._obs_space}")
        return obs

    def _reset_inner(self) -> jax.Array:
        self._rng, key = split_keys(self._rng, n=1)
        obs, self._state = self._reset_fn(key, self.params)
        return obs

    def _step_inner(self, action: int) -> tuple[jax.Array, jax.Array, bool, dict[str, Any]]:
        self._rng, key = split_keys(self._rng, n=1)
        obs, self._state, reward, done, info = self._step_fn(
            key, self._state, jnp.int32(action), self.params,
        )
        return obs, reward, bool(done), {k: np.asarray(v) for k, v in info.items()}

    def __repr__(self) -> str:
        return f"JaxEnvAdapter({self.env.name}, frame_skip={self.frame_skip})"


class GymnasiumAdapter(FrameSkipAdapter):
    """Drives a Gymnasium environment with a discrete action space.

    ``terminated or truncated`` ends the episode.  An optional
    *preprocess* function maps each raw frame to the fixed-shape
    observation the network consumes; it must be pure.

    Args:
        gym_env: A ``gymnasium.Env`` instance.
        frame_skip: Frames each action is repeated for.  Leave at 1 when
            the Gymnasium env already skips frames.
        seed: Seed for the first ``reset``.
        preprocess: Optional ``frame -> observation`` function.
    """

    def __init__(
        self,
        gym_env: Any,
        *,
        frame_skip: int = 1,
        seed: int | None = None,
        preprocess: Callable[[np.ndarray], np.ndarray] | None = None,
    ) -> None:
        try:
            import gymnasium  # noqa: F401
        except ImportError:
            raise ImportError(
                "gymnasium is required for GymnasiumAdapter. "
                "Install it with: pip install deepq[gym]"
            ) from None

        super().__init__(frame_skip=frame_skip)
        self._gym_env = gym_env
        self._seed = seed
        self._preprocess = preprocess

        act_sp = gym_env.action_space
        if not hasattr(act_sp, "n"):
            raise ValueError(f"GymnasiumAdapter needs a Discrete action space, got {act_sp}")
        self._n_actions = int(act_sp.n)

        obs_sp = gym_env.observation_space
        probe = np.zeros(obs_sp.shape, dtype=obs_sp.dtype)
        probe = self._apply(probe)
        self._obs_shape = tuple(probe.shape)
        self._obs_dtype = probe.dtype

    @property
    def n_actions(self) -> int:
        return self._n_actions

    @property
    def obs_shape(self) -> tuple[int, ...]:
        return self._obs_shape

    @property
    def obs_dtype(self) -> np.dtype:
        return self._obs_dtype

    def _apply(self, frame: Any) -> np.ndarray:
        frame = np.asarray(frame)
        return np.asarray(self._preprocess(frame)) if self._preprocess else frame

    def _reset_inner(self) -> np.ndarray:
        obs, _info = self._gym_env.reset(seed=self._seed)
        # Only the first reset is seeded; later episodes continue the stream.
        self._seed = None
        return self._apply(obs)

    def _step_inner(self, action: int) -> tuple[np.ndarray, Any, bool, dict[str, Any]]:
        obs, reward, terminated, truncated, info = self._gym_env.step(action)
        info = {**info, "terminated": bool(terminated), "truncated": bool(truncated)}
        return self._apply(obs), reward, bool(terminated or truncated), info

    def __repr__(self) -> str:
        return f"GymnasiumAdapter({self._gym_env}, frame_skip={self.frame_skip})"
