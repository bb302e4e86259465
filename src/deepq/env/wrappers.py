"""Observation preprocessing wrappers for pure-JAX environments.

Each wrapper satisfies the ``Environment`` protocol so they compose::

    env = FrameStackWrapper(GrayscaleWrapper(PixelGridWorld()), n_frames=4)

The result is the fixed-shape stacked-frame observation the
convolutional Q-network expects.
"""

from __future__ import annotations

from typing import Any

import jax
import jax.numpy as jnp

from deepq.env.base import Environment, EnvParams, EnvState
from deepq.env.spaces import Box, Discrete, Image

# ITU-R 601 luma weights
_LUMA = (0.299, 0.587, 0.114)


def to_grayscale(frame: jax.Array) -> jax.Array:
    """Luminance of an ``(H, W, 3)`` frame as ``(H, W, 1)``, same dtype."""
    weights = jnp.array(_LUMA, dtype=jnp.float32)
    gray = jnp.sum(frame.astype(jnp.float32) * weights, axis=-1, keepdims=True)
    if jnp.issubdtype(frame.dtype, jnp.integer):
        gray = jnp.round(gray)
    return gray.astype(frame.dtype)


class GrayscaleWrapper(Environment):
    """Converts RGB image observations to single-channel luminance."""

    def __init__(self, env: Environment) -> None:
        self.env = env

    def default_params(self) -> EnvParams:
        return self.env.default_params()

    def reset(self, key: jax.Array, params: EnvParams) -> tuple[jax.Array, EnvState]:
        obs, state = self.env.reset(key, params)
        return to_grayscale(obs), state

    def step(
        self,
        key: jax.Array,
        state: EnvState,
        action: jax.Array,
        params: EnvParams,
    ) -> tuple[jax.Array, EnvState, jax.Array, jax.Array, dict[str, Any]]:
        obs, state, reward, done, info = self.env.step(key, state, action, params)
        return to_grayscale(obs), state, reward, done, info

    def observation_space(self, params: EnvParams) -> Image:
        inner = self.env.observation_space(params)
        if not isinstance(inner, Image) or inner.channels != 3:
            raise ValueError(f"GrayscaleWrapper needs an RGB Image space, got {inner}")
        return Image(height=inner.height, width=inner.width, channels=1)

    def action_space(self, params: EnvParams) -> Discrete:
        return self.env.action_space(params)


class FrameStackState(EnvState):
    """Inner state plus the rolling frame buffer."""

    inner: EnvState
    frames: jax.Array  # (n_frames, *obs_shape)


class FrameStackWrapper(Environment):
    """Stacks the last ``n_frames`` observations along a new leading axis.

    On reset the first observation is repeated ``n_frames`` times.
    """

    def __init__(self, env: Environment, n_frames: int) -> None:
        if n_frames < 1:
            raise ValueError(f"n_frames must be >= 1, got {n_frames}")
        self.env = env
        self.n_frames = n_frames

    def default_params(self) -> EnvParams:
        return self.env.default_params()

    def reset(self, key: jax.Array, params: EnvParams) -> tuple[jax.Array, FrameStackState]:
        obs, inner = self.env.reset(key, params)
        frames = jnp.repeat(obs[None], self.n_frames, axis=0)
        return frames, FrameStackState(inner=inner, time=inner.time, frames=frames)

    def step(
        self,
        key: jax.Array,
        state: FrameStackState,
        action: jax.Array,
        params: EnvParams,
    ) -> tuple[jax.Array, FrameStackState, jax.Array, jax.Array, dict[str, Any]]:
        obs, inner, reward, done, info = self.env.step(key, state.inner, action, params)
        frames = jnp.concatenate([state.frames[1:], obs[None]], axis=0)
        new_state = FrameStackState(inner=inner, time=inner.time, frames=frames)
        return frames, new_state, reward, done, info

    def observation_space(self, params: EnvParams) -> Box | Image:
        inner = self.env.observation_space(params)
        if isinstance(inner, Image):
            return Image(
                height=inner.height,
                width=inner.width,
                channels=inner.channels,
                frames=self.n_frames,
            )
        low = jnp.broadcast_to(inner.low, (self.n_frames, *inner.shape))
        high = jnp.broadcast_to(inner.high, (self.n_frames, *inner.shape))
        return Box(low=low, high=high)

    def action_space(self, params: EnvParams) -> Discrete:
        return self.env.action_space(params)
