"""Q-networks implemented with Equinox.

One architecture definition, instantiated twice by the agent: once for
the online parameters and once for the target parameters.
"""

from __future__ import annotations

import math

import equinox as eqx
import jax
import jax.numpy as jnp

from deepq.algorithms.dqn.config import DQNConfig
from deepq.networks.cnn import CNNEncoder


class QNetwork(eqx.Module):
    """MLP Q-network: flattened obs -> Q(s, a) for each discrete action."""

    layers: list

    def __init__(
        self,
        obs_dim: int,
        n_actions: int,
        hidden_sizes: tuple[int, ...] = (128, 128),
        *,
        key: jax.Array,
    ) -> None:
        dims = [obs_dim, *hidden_sizes, n_actions]
        keys = jax.random.split(key, len(dims) - 1)
        self.layers = [
            eqx.nn.Linear(d_in, d_out, key=k)
            for d_in, d_out, k in zip(dims[:-1], dims[1:], keys)
        ]

    def __call__(self, x: jax.Array) -> jax.Array:
        x = x.astype(jnp.float32).reshape(-1)
        for layer in self.layers[:-1]:
            x = jax.nn.relu(layer(x))
        return self.layers[-1](x)


class ConvQNetwork(eqx.Module):
    """Nature-DQN Q-network for image or stacked-frame observations."""

    encoder: CNNEncoder
    head: eqx.nn.Linear

    def __init__(
        self,
        obs_shape: tuple[int, ...],
        n_actions: int,
        channel_sizes: tuple[int, ...] = (32, 64, 64),
        kernel_sizes: tuple[int, ...] = (8, 4, 3),
        strides: tuple[int, ...] = (4, 2, 1),
        mlp_hidden: int = 512,
        *,
        key: jax.Array,
    ) -> None:
        k_enc, k_head = jax.random.split(key)
        self.encoder = CNNEncoder(
            obs_shape,
            channel_sizes=channel_sizes,
            kernel_sizes=kernel_sizes,
            strides=strides,
            mlp_hidden=mlp_hidden,
            key=k_enc,
        )
        self.head = eqx.nn.Linear(self.encoder.output_dim, n_actions, key=k_head)

    def __call__(self, x: jax.Array) -> jax.Array:
        return self.head(self.encoder(x))


def build_q_network(
    obs_shape: tuple[int, ...],
    n_actions: int,
    config: DQNConfig,
    *,
    key: jax.Array,
) -> QNetwork | ConvQNetwork:
    """Pick an architecture from the observation rank.

    Rank 3 ``(H, W, C)`` and rank 4 ``(n, H, W, C)`` observations get the
    convolutional network; everything else is flattened into the MLP.
    """
    if len(obs_shape) in (3, 4):
        return ConvQNetwork(
            obs_shape,
            n_actions,
            channel_sizes=config.cnn_channels,
            kernel_sizes=config.cnn_kernels,
            strides=config.cnn_strides,
            mlp_hidden=config.cnn_hidden,
            key=key,
        )
    return QNetwork(math.prod(obs_shape), n_actions, config.hidden_sizes, key=key)
