"""Convolutional torso for pixel observations.

Defaults reproduce the Nature DQN stack (Mnih et al. 2015): three
unpadded ReLU convolutions of 32x8x8/4, 64x4x4/2 and 64x3x3/1 followed
by a 512-unit dense layer.  An ``(n, H, W, C)`` frame stack enters as a
single ``(H, W, n * C)`` image.
"""

from __future__ import annotations

import equinox as eqx
import jax
import jax.numpy as jnp


def conv_output_size(size: int, kernel_sizes: tuple[int, ...], strides: tuple[int, ...]) -> int:
    """Spatial size after a stack of unpadded convolutions."""
    for ks, st in zip(kernel_sizes, strides):
        size = (size - ks) // st + 1
    return size


def _image_layout(obs_shape: tuple[int, ...]) -> tuple[int, int, int]:
    """``(H, W, channels)`` after folding any frame axis into channels."""
    if len(obs_shape) == 3:
        return obs_shape[0], obs_shape[1], obs_shape[2]
    if len(obs_shape) == 4:
        n, h, w, c = obs_shape
        return h, w, n * c
    raise ValueError(f"CNNEncoder expects a 3-D or 4-D obs_shape, got {obs_shape}")


class CNNEncoder(eqx.Module):
    """Image (or frame stack) to a ``output_dim`` feature vector.

    Pixels stored as ``uint8`` are rescaled to ``[0, 1]``.
    """

    conv_layers: list
    fc: eqx.nn.Linear
    output_dim: int = eqx.field(static=True)

    def __init__(
        self,
        obs_shape: tuple[int, ...],
        channel_sizes: tuple[int, ...] = (32, 64, 64),
        kernel_sizes: tuple[int, ...] = (8, 4, 3),
        strides: tuple[int, ...] = (4, 2, 1),
        mlp_hidden: int = 512,
        *,
        key: jax.Array,
    ) -> None:
        height, width, in_ch = _image_layout(tuple(obs_shape))
        out_h = conv_output_size(height, kernel_sizes, strides)
        out_w = conv_output_size(width, kernel_sizes, strides)
        if min(out_h, out_w) < 1:
            raise ValueError(
                f"Observation {height}x{width} is too small for kernels "
                f"{kernel_sizes} with strides {strides}"
            )

        *conv_keys, fc_key = jax.random.split(key, len(channel_sizes) + 1)
        widths = (in_ch, *channel_sizes)
        self.conv_layers = [
            eqx.nn.Conv2d(c_in, c_out, kernel_size=ks, stride=st, key=k)
            for c_in, c_out, ks, st, k in zip(
                widths[:-1], widths[1:], kernel_sizes, strides, conv_keys
            )
        ]
        self.fc = eqx.nn.Linear(out_h * out_w * channel_sizes[-1], mlp_hidden, key=fc_key)
        self.output_dim = mlp_hidden

    def __call__(self, x: jax.Array) -> jax.Array:
        scale = 1.0 / 255.0 if x.dtype == jnp.uint8 else 1.0
        x = x.astype(jnp.float32) * scale
        if x.ndim == 4:
            x = jnp.concatenate(list(x), axis=-1)
        # (H, W, C) -> (C, H, W) for eqx.nn.Conv2d
        h = jnp.moveaxis(x, -1, 0)
        for conv in self.conv_layers:
            h = jax.nn.relu(conv(h))
        return jax.nn.relu(self.fc(h.ravel()))
