"""PRNG key management.

All JAX randomness flows through explicit keys derived from one integer
seed.  Replay sampling uses a numpy ``Generator`` seeded from the same
root so a run is reproducible end to end.

Usage::

    from deepq.seeding import make_rng, split_keys

    rng = make_rng(42)
    rng, agent_key, env_key = split_keys(rng, n=2)
"""

from __future__ import annotations

import jax


def make_rng(seed: int) -> jax.Array:
    """Create a JAX PRNG key from an integer seed."""
    return jax.random.PRNGKey(seed)


def split_keys(rng: jax.Array, n: int) -> tuple[jax.Array, ...]:
    """Split *rng* into ``n + 1`` keys.

    Returns ``(new_rng, key_1, ..., key_n)``.  The first element is the
    continuation key; the remaining *n* keys are independent subkeys.
    """
    keys = jax.random.split(rng, n + 1)
    return tuple(keys)  # type: ignore[return-value]


def fold_in(rng: jax.Array, data: int) -> jax.Array:
    """Deterministically derive a new key by folding *data* into *rng*.

    Used for per-episode evaluation keys::

        episode_key = fold_in(eval_rng, episode_index)
    """
    return jax.random.fold_in(rng, data)


def numpy_seed(rng: jax.Array) -> int:
    """Draw a 31-bit integer seed from *rng* for numpy / Gymnasium."""
    return int(jax.random.randint(rng, (), 0, 2**31 - 1))
