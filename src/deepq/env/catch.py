"""Pure-JAX Catch: a minimal pixel arcade game.

A ball falls one row per step from a random column at the top of a
``rows x cols`` board; the agent moves a one-cell paddle along the
bottom row.  When the ball reaches the bottom the episode ends with
``hit_reward`` if the paddle is under it, ``miss_reward`` otherwise.

Actions: ``0``=left, ``1``=stay, ``2``=right.
Observation: ``(rows, cols, 1)`` uint8 frame (ball and paddle 255).

The rewards default to +/-1 but are configurable, so the trainer's
reward clipping can be exercised with arcade-scale scores.
"""

from __future__ import annotations

from typing import Any

import equinox as eqx
import jax
import jax.numpy as jnp

from deepq.env.base import Environment, EnvParams, EnvState
from deepq.env.spaces import Discrete, Image


class CatchState(EnvState):
    ball_row: jax.Array
    ball_col: jax.Array
    paddle_col: jax.Array


class CatchParams(EnvParams):
    rows: int = eqx.field(static=True, default=10)
    cols: int = eqx.field(static=True, default=5)
    hit_reward: float = eqx.field(static=True, default=1.0)
    miss_reward: float = eqx.field(static=True, default=-1.0)


class Catch(Environment):
    """Catch the falling ball with the paddle."""

    def default_params(self) -> CatchParams:
        return CatchParams()

    def reset(self, key: jax.Array, params: CatchParams) -> tuple[jax.Array, CatchState]:
        state = CatchState(
            ball_row=jnp.int32(0),
            ball_col=jax.random.randint(key, (), 0, params.cols),
            paddle_col=jnp.int32(params.cols // 2),
            time=jnp.int32(0),
        )
        return self._render(state, params), state

    def step(
        self,
        key: jax.Array,
        state: CatchState,
        action: jax.Array,
        params: CatchParams,
    ) -> tuple[jax.Array, CatchState, jax.Array, jax.Array, dict[str, Any]]:
        paddle = jnp.clip(state.paddle_col + action - 1, 0, params.cols - 1)
        ball_row = state.ball_row + 1
        new_state = CatchState(
            ball_row=ball_row,
            ball_col=state.ball_col,
            paddle_col=paddle,
            time=state.time + 1,
        )

        done = ball_row >= params.rows - 1
        caught = paddle == state.ball_col
        reward = jnp.where(
            done,
            jnp.where(caught, jnp.float32(params.hit_reward), jnp.float32(params.miss_reward)),
            jnp.float32(0.0),
        )
        info = {"terminated": done, "truncated": jnp.bool_(False)}
        return self._render(new_state, params), new_state, reward, done, info

    def observation_space(self, params: CatchParams) -> Image:
        return Image(height=params.rows, width=params.cols, channels=1)

    def action_space(self, params: CatchParams) -> Discrete:
        return Discrete(n=3)

    @staticmethod
    def _render(state: CatchState, params: CatchParams) -> jax.Array:
        rows = jnp.arange(params.rows)[:, None]
        cols = jnp.arange(params.cols)[None, :]
        ball = (rows == state.ball_row) & (cols == state.ball_col)
        paddle = (rows == params.rows - 1) & (cols == state.paddle_col)
        img = jnp.where(ball | paddle, jnp.uint8(255), jnp.uint8(0))
        return img[..., None]
