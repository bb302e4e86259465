"""DQN hyperparameters."""

from __future__ import annotations

from dataclasses import dataclass

from deepq.errors import ConfigError


@dataclass(frozen=True)
class DQNConfig:
    """All DQN hyperparameters in one place.

    Frozen dataclass, so it is hashable and safe to pass into jitted
    functions as a static argument.  Defaults follow the Nature DQN
    setup scaled down for small environments.
    """

    # Network (MLP for vector observations)
    hidden_sizes: tuple[int, ...] = (128, 128)

    # Network (CNN for image / stacked-frame observations)
    cnn_channels: tuple[int, ...] = (32, 64, 64)
    cnn_kernels: tuple[int, ...] = (8, 4, 3)
    cnn_strides: tuple[int, ...] = (4, 2, 1)
    cnn_hidden: int = 512

    # Optimization
    optimizer: str = "rmsprop"  # "rmsprop" | "adam"
    lr: float = 2.5e-4
    gamma: float = 0.99
    batch_size: int = 32
    max_grad_norm: float = 10.0
    huber_delta: float = 1.0

    # Target network: hard sync every C learning updates
    target_sync_interval: int = 1_000

    # Exploration
    epsilon_start: float = 1.0
    epsilon_final: float = 0.1
    epsilon_decay_span: int = 150_000
    epsilon_eval: float = 0.0

    def __post_init__(self) -> None:
        if self.optimizer not in ("rmsprop", "adam"):
            raise ConfigError(f"optimizer must be 'rmsprop' or 'adam', got {self.optimizer!r}")
        if not 0.0 <= self.gamma <= 1.0:
            raise ConfigError(f"gamma must lie in [0, 1], got {self.gamma}")
        if self.batch_size <= 0:
            raise ConfigError(f"batch_size must be positive, got {self.batch_size}")
        if self.target_sync_interval <= 0:
            raise ConfigError(
                f"target_sync_interval must be positive, got {self.target_sync_interval}"
            )
        if self.epsilon_decay_span <= 0:
            raise ConfigError(
                f"epsilon_decay_span must be positive, got {self.epsilon_decay_span}"
            )
        for name in ("epsilon_start", "epsilon_final", "epsilon_eval"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must lie in [0, 1], got {value}")
        # Exploration must never increase over time.
        if self.epsilon_final > self.epsilon_start:
            raise ConfigError("epsilon_final must not exceed epsilon_start")
        if not len(self.cnn_channels) == len(self.cnn_kernels) == len(self.cnn_strides):
            raise ConfigError("cnn_channels, cnn_kernels and cnn_strides must have equal length")
