"""Observation and action spaces for the pure-JAX environments.

The adapters read ``shape`` to fix the replay arena layout and use
``contains`` to reject out-of-bounds observations before they are
stored.
"""

from __future__ import annotations

import equinox as eqx
import jax
import jax.numpy as jnp


class Discrete(eqx.Module):
    """Actions ``0 .. n-1``."""

    n: int = eqx.field(static=True)

    def contains(self, x: jax.Array) -> jax.Array:
        return (x >= 0) & (x < self.n)

    @property
    def shape(self) -> tuple[int, ...]:
        return ()

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.int32


class Box(eqx.Module):
    """Real-valued observations bounded elementwise by ``low`` / ``high``.

    Pass scalar bounds with an explicit ``shape``, or array bounds whose
    shape becomes the space shape.  Bounds are kept as static tuples so
    spaces hash and compare by value.
    """

    _low: tuple[float, ...] = eqx.field(static=True)
    _high: tuple[float, ...] = eqx.field(static=True)
    _shape: tuple[int, ...] = eqx.field(static=True)

    def __init__(
        self,
        low: float | jax.Array,
        high: float | jax.Array,
        shape: tuple[int, ...] | None = None,
    ) -> None:
        if shape is None:
            lo = jnp.asarray(low, dtype=jnp.float32)
            hi = jnp.asarray(high, dtype=jnp.float32)
        else:
            lo = jnp.full(shape, low, dtype=jnp.float32)
            hi = jnp.full(shape, high, dtype=jnp.float32)
        self._shape = tuple(int(d) for d in lo.shape)
        self._low = tuple(float(v) for v in lo.ravel())
        self._high = tuple(float(v) for v in hi.ravel())

    @property
    def low(self) -> jax.Array:
        return jnp.asarray(self._low, dtype=jnp.float32).reshape(self._shape)

    @property
    def high(self) -> jax.Array:
        return jnp.asarray(self._high, dtype=jnp.float32).reshape(self._shape)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.float32

    def contains(self, x: jax.Array) -> jax.Array:
        return jnp.all((x >= self.low) & (x <= self.high))


class Image(eqx.Module):
    """uint8 frames, optionally stacked.

    ``frames == 0`` gives ``(height, width, channels)``; ``frames > 0``
    gives a stack of shape ``(frames, height, width, channels)``.
    """

    height: int = eqx.field(static=True)
    width: int = eqx.field(static=True)
    channels: int = eqx.field(static=True)
    frames: int = eqx.field(static=True, default=0)

    @property
    def shape(self) -> tuple[int, ...]:
        hwc = (self.height, self.width, self.channels)
        return (self.frames, *hwc) if self.frames else hwc

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.uint8

    def contains(self, x: jax.Array) -> jax.Array:
        # uint8 values are in range by construction; only the layout can be wrong.
        return jnp.asarray(x.shape == self.shape)
