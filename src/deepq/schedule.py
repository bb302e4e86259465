"""Step-indexed schedules.

A schedule is a pure ``step -> value`` function.  Nothing is stored
between calls, so the exploration rate can never drift away from the
step counter it is derived from, and the same function works both in
Python and under ``jax.jit``::

    eps = linear_schedule(start=1.0, end=0.1, steps=150_000)
    eps(0)          # 1.0
    eps(75_000)     # 0.55
    eps(10**9)      # 0.1
"""

from __future__ import annotations

from collections.abc import Callable

import jax.numpy as jnp

Schedule = Callable[[int | jnp.ndarray], jnp.ndarray]


def linear_schedule(start: float, end: float, steps: int) -> Schedule:
    """Linear ramp from *start* (step 0) to *end* (step *steps* onwards).

    Steps before 0 give *start*.  ``steps < 1`` is treated as 1, i.e.
    the value is *end* from step 1 on.
    """
    span = jnp.float32(max(steps, 1))
    first, last = jnp.float32(start), jnp.float32(end)

    def schedule(step: int | jnp.ndarray) -> jnp.ndarray:
        progress = jnp.clip(jnp.asarray(step, dtype=jnp.float32) / span, 0.0, 1.0)
        return first + progress * (last - first)

    return schedule
