"""Environments and the adapters the training loop consumes.

Quick start::

    from deepq.env import make_adapter

    adapter = make_adapter("Catch-v0", frame_skip=1, seed=0)
    obs = adapter.reset()
    obs, reward, done, info = adapter.step(1)
"""

from deepq.env.adapter import (
    EnvironmentAdapter,
    FrameSkipAdapter,
    GymnasiumAdapter,
    JaxEnvAdapter,
)
from deepq.env.base import Environment, EnvParams, EnvState
from deepq.env.catch import Catch, CatchParams, CatchState
from deepq.env.grid_world import GridWorld, GridWorldParams, GridWorldState, PixelGridWorld
from deepq.env.spaces import Box, Discrete, Image
from deepq.env.wrappers import FrameStackWrapper, GrayscaleWrapper, to_grayscale

# ---- Registry ----

_REGISTRY: dict[str, type[Environment]] = {
    "Catch-v0": Catch,
    "GridWorld-v0": GridWorld,
    "PixelGridWorld-v0": PixelGridWorld,
}


def register(name: str, cls: type[Environment]) -> None:
    """Register a custom environment class under *name*."""
    _REGISTRY[name] = cls


def make(name: str, **kwargs: object) -> tuple[Environment, EnvParams]:
    """Create an environment and its default params by name.

    Returns:
        ``(env, params)`` tuple ready for ``JaxEnvAdapter(env, params)``.
    """
    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown environment {name!r}. Available: {available}")
    env = _REGISTRY[name](**kwargs)
    return env, env.default_params()


def make_adapter(
    name: str,
    *,
    frame_skip: int = 1,
    seed: int = 0,
    grayscale: bool = False,
    frame_stack: int = 0,
    **kwargs: object,
) -> JaxEnvAdapter:
    """Build a registered environment, apply wrappers and wrap it in an adapter.

    Wrappers are applied innermost first: grayscale conversion, then
    frame stacking (``frame_stack > 1``).
    """
    env, params = make(name, **kwargs)
    if grayscale:
        env = GrayscaleWrapper(env)
    if frame_stack > 1:
        env = FrameStackWrapper(env, frame_stack)
    return JaxEnvAdapter(env, params, frame_skip=frame_skip, seed=seed)


__all__ = [
    # Base
    "Environment",
    "EnvState",
    "EnvParams",
    # Spaces
    "Box",
    "Discrete",
    "Image",
    # Environments
    "Catch",
    "CatchParams",
    "CatchState",
    "GridWorld",
    "GridWorldParams",
    "GridWorldState",
    "PixelGridWorld",
    # Wrappers
    "FrameStackWrapper",
    "GrayscaleWrapper",
    "to_grayscale",
    # Adapters
    "EnvironmentAdapter",
    "FrameSkipAdapter",
    "GymnasiumAdapter",
    "JaxEnvAdapter",
    # Registry
    "make",
    "make_adapter",
    "register",
]
