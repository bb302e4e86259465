"""Pure-function simulator interface behind :class:`JaxEnvAdapter`.

Simulators are Gymnax-style: state and params are explicit pytrees and
nothing is mutated, so ``reset`` / ``step`` can be jitted as they are::

    env = Catch()
    params = env.default_params()
    obs, state = env.reset(key, params)
    obs, state, reward, done, info = env.step(key, state, action, params)

The training loop never calls this interface itself; it goes through a
stateful :class:`~deepq.env.adapter.EnvironmentAdapter`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import equinox as eqx
import jax

from deepq.env.spaces import Box, Discrete, Image


class EnvState(eqx.Module):
    """Immutable per-episode simulator state; ``step`` returns a new one."""

    time: jax.Array  # frames elapsed in the current episode


class EnvParams(eqx.Module):
    """Static simulator settings (board size, rewards...), separate from state."""


class Environment(ABC):
    """A discrete-action simulator with pure ``reset`` and ``step``."""

    @abstractmethod
    def default_params(self) -> EnvParams: ...

    @abstractmethod
    def reset(self, key: jax.Array, params: EnvParams) -> tuple[jax.Array, EnvState]:
        """Start an episode; returns ``(obs, state)``."""

    @abstractmethod
    def step(
        self,
        key: jax.Array,
        state: EnvState,
        action: jax.Array,
        params: EnvParams,
    ) -> tuple[jax.Array, EnvState, jax.Array, jax.Array, dict[str, Any]]:
        """Advance one frame; returns ``(obs, state, reward, done, info)``.

        *done* is ``terminated | truncated``; ``info`` carries the two
        flags separately.
        """

    @abstractmethod
    def observation_space(self, params: EnvParams) -> Box | Image: ...

    @abstractmethod
    def action_space(self, params: EnvParams) -> Discrete: ...

    @property
    def name(self) -> str:
        return type(self).__name__
