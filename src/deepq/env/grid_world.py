"""Pure-JAX GridWorld navigation, with vector or pixel observations.

The agent starts at ``(0, 0)`` and must reach ``(size-1, size-1)``.
Actions: ``0``=up, ``1``=right, ``2``=down, ``3``=left.
Reward: ``goal_reward`` on reaching the goal, ``step_penalty`` otherwise.
The episode is truncated after ``max_steps``.

``GridWorld`` observes ``[row, col] / (size-1)``.  ``PixelGridWorld``
renders the same dynamics as an RGB uint8 image (agent white, goal
green, empty black), each cell ``cell_px`` pixels wide.
"""

from __future__ import annotations

from typing import Any

import equinox as eqx
import jax
import jax.numpy as jnp

from deepq.env.base import Environment, EnvParams, EnvState
from deepq.env.spaces import Box, Discrete, Image


class GridWorldState(EnvState):
    row: jax.Array
    col: jax.Array


class GridWorldParams(EnvParams):
    size: int = eqx.field(static=True, default=5)
    max_steps: int = eqx.field(static=True, default=100)
    goal_reward: float = eqx.field(static=True, default=1.0)
    step_penalty: float = eqx.field(static=True, default=-0.01)
    cell_px: int = eqx.field(static=True, default=8)


# Directional deltas: up, right, down, left
_DR = jnp.array([-1, 0, 1, 0], dtype=jnp.int32)
_DC = jnp.array([0, 1, 0, -1], dtype=jnp.int32)


class GridWorld(Environment):
    """Grid navigation with normalised coordinate observations."""

    def default_params(self) -> GridWorldParams:
        return GridWorldParams()

    def reset(
        self,
        key: jax.Array,
        params: GridWorldParams,
    ) -> tuple[jax.Array, GridWorldState]:
        state = GridWorldState(row=jnp.int32(0), col=jnp.int32(0), time=jnp.int32(0))
        return self.observe(state, params), state

    def step(
        self,
        key: jax.Array,
        state: GridWorldState,
        action: jax.Array,
        params: GridWorldParams,
    ) -> tuple[jax.Array, GridWorldState, jax.Array, jax.Array, dict[str, Any]]:
        row = jnp.clip(state.row + _DR[action], 0, params.size - 1)
        col = jnp.clip(state.col + _DC[action], 0, params.size - 1)
        new_state = GridWorldState(row=row, col=col, time=state.time + 1)

        terminated = (row == params.size - 1) & (col == params.size - 1)
        truncated = new_state.time >= params.max_steps
        reward = jnp.where(
            terminated, jnp.float32(params.goal_reward), jnp.float32(params.step_penalty),
        )
        info = {"terminated": terminated, "truncated": truncated}
        return self.observe(new_state, params), new_state, reward, terminated | truncated, info

    def observation_space(self, params: GridWorldParams) -> Box:
        return Box(low=0.0, high=1.0, shape=(2,))

    def action_space(self, params: GridWorldParams) -> Discrete:
        return Discrete(n=4)

    def observe(self, state: GridWorldState, params: GridWorldParams) -> jax.Array:
        denom = jnp.maximum(params.size - 1, 1)
        return jnp.array([state.row / denom, state.col / denom], dtype=jnp.float32)


class PixelGridWorld(GridWorld):
    """GridWorld rendered as a ``(size*cell_px, size*cell_px, 3)`` uint8 image."""

    def observation_space(self, params: GridWorldParams) -> Image:
        side = params.size * params.cell_px
        return Image(height=side, width=side, channels=3)

    def observe(self, state: GridWorldState, params: GridWorldParams) -> jax.Array:
        side = params.size * params.cell_px
        cells = jnp.arange(side) // params.cell_px
        rows = cells[:, None]
        cols = cells[None, :]

        agent = (rows == state.row) & (cols == state.col)
        goal = (rows == params.size - 1) & (cols == params.size - 1)
        on = jnp.uint8(255)
        off = jnp.uint8(0)
        red = jnp.where(agent, on, off)
        green = jnp.where(agent | goal, on, off)
        return jnp.stack([red, green, red], axis=-1)
