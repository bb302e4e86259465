from deepq.algorithms.dqn.agent import DQN, DQNMetrics, make_optimizer
from deepq.algorithms.dqn.config import DQNConfig
from deepq.algorithms.dqn.network import ConvQNetwork, QNetwork, build_q_network
from deepq.algorithms.dqn.types import DQNState

__all__ = [
    "ConvQNetwork",
    "DQN",
    "DQNConfig",
    "DQNMetrics",
    "DQNState",
    "QNetwork",
    "build_q_network",
    "make_optimizer",
]
