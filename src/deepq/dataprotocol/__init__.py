"""Experience data structures.

Core types:
    - Transition: immutable NamedTuple experience container
    - ReplayBuffer: numpy-backed FIFO ring with jax.Array sampling
"""

from deepq.dataprotocol.replay_buffer import ReplayBuffer
from deepq.dataprotocol.transition import Batch, Transition, make_dummy_transition

__all__ = [
    "Batch",
    "ReplayBuffer",
    "Transition",
    "make_dummy_transition",
]
