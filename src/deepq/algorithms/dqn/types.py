"""The pytree threaded through every :class:`~deepq.algorithms.dqn.agent.DQN` call."""

from __future__ import annotations

from typing import NamedTuple

import chex

from deepq.types import OptState, Params


class DQNState(NamedTuple):
    """Online/target network pair plus everything the learner carries.

    ``target_params`` starts as a copy of ``params`` and afterwards only
    changes when ``DQN.sync_target`` overwrites it; gradients never reach
    it.  ``step`` counts learning updates (not environment steps) and is
    what the sync cadence is measured against.  ``rng`` feeds action
    selection and is split on every ``DQN.act`` call.
    """

    params: Params
    target_params: Params
    opt_state: OptState
    step: chex.Array
    rng: chex.PRNGKey
