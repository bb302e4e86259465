"""Root test configuration and shared test doubles.

Pins JAX to the CPU backend *before* JAX is imported anywhere; setting
the flag after the backend initialises has no effect.
"""

import os

os.environ.setdefault("JAX_PLATFORMS", "cpu")

from typing import Any  # noqa: E402

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from deepq.env.adapter import FrameSkipAdapter  # noqa: E402


class ScriptedAdapter(FrameSkipAdapter):
    """Deterministic adapter: fixed-length episodes with scripted rewards.

    Observation at frame ``t`` of an episode is ``[t, t, t]``.  Rewards
    cycle through *rewards*.  ``bad_obs_at`` makes the frame with that
    index return an observation of the wrong shape.
    """

    def __init__(
        self,
        *,
        episode_length: int = 5,
        rewards: tuple[float, ...] = (1.0,),
        n_actions: int = 2,
        frame_skip: int = 1,
        bad_obs_at: int | None = None,
    ) -> None:
        super().__init__(frame_skip=frame_skip)
        self.episode_length = episode_length
        self.rewards = rewards
        self._n_actions = n_actions
        self.bad_obs_at = bad_obs_at
        self.t = 0
        self.total_frames = 0
        self.resets = 0
        self.actions: list[int] = []

    @property
    def n_actions(self) -> int:
        return self._n_actions

    @property
    def obs_shape(self) -> tuple[int, ...]:
        return (3,)

    def _reset_inner(self) -> np.ndarray:
        self.t = 0
        self.resets += 1
        return np.zeros(3, dtype=np.float32)

    def _step_inner(self, action: int) -> tuple[np.ndarray, float, bool, dict[str, Any]]:
        reward = self.rewards[self.total_frames % len(self.rewards)]
        self.t += 1
        self.total_frames += 1
        self.actions.append(action)
        if self.bad_obs_at is not None and self.total_frames == self.bad_obs_at:
            obs = np.zeros(4, dtype=np.float32)
        else:
            obs = np.full(3, self.t, dtype=np.float32)
        return obs, reward, self.t >= self.episode_length, {}


@pytest.fixture
def scripted_adapter() -> ScriptedAdapter:
    return ScriptedAdapter()


@pytest.fixture
def scripted_adapter_cls() -> type[ScriptedAdapter]:
    return ScriptedAdapter
