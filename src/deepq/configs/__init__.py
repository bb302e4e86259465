"""Preset configuration registry for deepq experiments."""

from deepq.configs.presets import PRESETS, TrainConfig, build_adapter, cli

__all__ = [
    "PRESETS",
    "TrainConfig",
    "build_adapter",
    "cli",
]
