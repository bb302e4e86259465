"""The ``(s, a, r, s', done)`` record stored in and sampled from replay."""

from __future__ import annotations

from typing import NamedTuple

import jax.numpy as jnp
from jax import Array


class Transition(NamedTuple):
    """A single step, or a batch of them when every field has a leading axis.

    ``reward`` is the clipped reward the learner trains on, and ``done``
    marks a terminal ``next_obs`` whose value must not be bootstrapped.
    ``ReplayBuffer.sample`` returns the batched form directly, so the
    same NamedTuple goes into ``DQN.learn`` without repacking.
    """

    obs: Array
    action: Array
    reward: Array
    next_obs: Array
    done: Array


Batch = Transition


def make_dummy_transition(
    obs_shape: tuple[int, ...],
    obs_dtype: jnp.dtype = jnp.float32,
) -> Transition:
    """All-zero unbatched transition, for shape and dtype templates."""
    obs = jnp.zeros(obs_shape, dtype=obs_dtype)
    return Transition(
        obs=obs,
        action=jnp.int32(0),
        reward=jnp.float32(0.0),
        next_obs=obs,
        done=jnp.bool_(False),
    )
