from deepq.runner.config import RunnerConfig
from deepq.runner.evaluator import EvalMetrics, evaluate
from deepq.runner.train_dqn import (
    DQNTrainer,
    DQNTrainResult,
    EpisodePhase,
    clip_reward,
    train_dqn,
)

__all__ = [
    "DQNTrainResult",
    "DQNTrainer",
    "EpisodePhase",
    "EvalMetrics",
    "RunnerConfig",
    "clip_reward",
    "evaluate",
    "train_dqn",
]
