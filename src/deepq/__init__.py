"""deepq: Deep Q-Network training core in JAX."""

from deepq.checkpoint import EqxCheckpointSink, load_eqx, save_eqx
from deepq.dataprotocol import ReplayBuffer, Transition
from deepq.env import make, make_adapter
from deepq.errors import (
    ConfigError,
    DQNError,
    EnvAdapterError,
    InsufficientDataError,
    NumericInstabilityError,
)
from deepq.metrics import JsonlMetricsSink, ListMetricsSink, MetricsLogger, setup_logging
from deepq.run_dir import RunDir
from deepq.schedule import linear_schedule
from deepq.seeding import fold_in, make_rng, split_keys

__all__ = [
    "ConfigError",
    "DQNError",
    "EnvAdapterError",
    "EqxCheckpointSink",
    "InsufficientDataError",
    "JsonlMetricsSink",
    "ListMetricsSink",
    "MetricsLogger",
    "NumericInstabilityError",
    "ReplayBuffer",
    "RunDir",
    "Transition",
    "fold_in",
    "linear_schedule",
    "load_eqx",
    "make",
    "make_adapter",
    "make_rng",
    "save_eqx",
    "setup_logging",
    "split_keys",
]
