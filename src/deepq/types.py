"""Pytree aliases shared by the agent modules."""

from __future__ import annotations

from typing import Any, TypeAlias

# An Equinox module; the module itself is the parameter pytree.
Params: TypeAlias = Any
# Whatever ``optax.GradientTransformation.init`` returns.
OptState: TypeAlias = Any
