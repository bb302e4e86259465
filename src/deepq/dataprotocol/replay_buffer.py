"""Uniform experience replay for DQN.

Storage is a set of pre-allocated numpy arrays (the arena) plus a write
cursor and a size counter.  Mutation stays in numpy; ``sample()`` returns
a ``Transition`` of jax arrays, ready for a jitted update.

The buffer itself is NOT jit-compatible: it lives outside the compiled
training step.  Typical usage::

    buffer = ReplayBuffer(capacity=100_000, obs_shape=(4,), seed=0)
    for step in range(total_steps):
        ...
        buffer.push(obs, action, reward, next_obs, done)
        if buffer.can_sample(batch_size):
            batch = buffer.sample(batch_size)
            state, metrics = jit_learn(state, batch)

A single lock guards writes and reads, so one producer thread may keep
pushing while a learner thread samples.  Sampled rows are copied out
under the lock and never observe a slot mid-overwrite.
"""

from __future__ import annotations

import threading

import jax.numpy as jnp
import numpy as np

from deepq.dataprotocol.transition import Transition
from deepq.errors import InsufficientDataError


class ReplayBuffer:
    """Fixed-capacity FIFO ring of transitions with uniform sampling.

    Insertion is O(1).  Once full, each push overwrites the oldest
    transition.  ``sample(k)`` draws ``k`` distinct slots uniformly at
    random (without replacement within a call, independently across
    calls).

    Args:
        capacity: Maximum number of transitions held.
        obs_shape: Shape of a single observation.
        obs_dtype: Storage dtype for observations.  Use ``np.uint8`` for
            pixel observations to keep the arena small.
        seed: Seed for the sampling generator.
    """

    def __init__(
        self,
        capacity: int,
        obs_shape: tuple[int, ...],
        obs_dtype: np.dtype | type = np.float32,
        seed: int | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self.capacity = capacity
        self.obs_shape = tuple(obs_shape)
        self._size = 0
        self._ptr = 0
        self._rng = np.random.default_rng(seed)
        self._lock = threading.Lock()

        self._obs = np.zeros((capacity, *self.obs_shape), dtype=obs_dtype)
        self._actions = np.zeros(capacity, dtype=np.int32)
        self._rewards = np.zeros(capacity, dtype=np.float32)
        self._next_obs = np.zeros((capacity, *self.obs_shape), dtype=obs_dtype)
        self._dones = np.zeros(capacity, dtype=np.bool_)

    def push(
        self,
        obs: np.ndarray,
        action: int | np.ndarray,
        reward: float,
        next_obs: np.ndarray,
        done: bool,
    ) -> None:
        """Store a single transition, evicting the oldest one when full."""
        with self._lock:
            idx = self._ptr
            self._obs[idx] = obs
            self._actions[idx] = action
            self._rewards[idx] = reward
            self._next_obs[idx] = next_obs
            self._dones[idx] = done
            self._ptr = (self._ptr + 1) % self.capacity
            self._size = min(self._size + 1, self.capacity)

    def insert(self, t: Transition) -> None:
        """Store a Transition (accepts jax or numpy fields)."""
        self.push(
            obs=np.asarray(t.obs),
            action=np.asarray(t.action),
            reward=np.asarray(t.reward),
            next_obs=np.asarray(t.next_obs),
            done=np.asarray(t.done),
        )

    def can_sample(self, batch_size: int) -> bool:
        with self._lock:
            return self._size >= batch_size

    def sample(self, batch_size: int) -> Transition:
        """Draw ``batch_size`` distinct transitions uniformly at random.

        Raises:
            InsufficientDataError: if fewer than ``batch_size``
                transitions are stored.
        """
        with self._lock:
            if self._size < batch_size:
                raise InsufficientDataError(batch_size, self._size)
            indices = self._rng.choice(self._size, size=batch_size, replace=False)
            # Fancy indexing copies, so the batch is a consistent snapshot.
            obs = self._obs[indices]
            actions = self._actions[indices]
            rewards = self._rewards[indices]
            next_obs = self._next_obs[indices]
            dones = self._dones[indices]

        return Transition(
            obs=jnp.asarray(obs),
            action=jnp.asarray(actions),
            reward=jnp.asarray(rewards),
            next_obs=jnp.asarray(next_obs),
            done=jnp.asarray(dones),
        )

    def contents(self) -> Transition:
        """Return every stored transition, oldest first, as numpy arrays."""
        with self._lock:
            if self._size < self.capacity:
                order = np.arange(self._size)
            else:
                order = (np.arange(self.capacity) + self._ptr) % self.capacity
            return Transition(
                obs=self._obs[order],
                action=self._actions[order],
                reward=self._rewards[order],
                next_obs=self._next_obs[order],
                done=self._dones[order],
            )

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def __repr__(self) -> str:
        return f"ReplayBuffer(size={self._size}, capacity={self.capacity})"
