"""Feature encoders shared by value networks."""

from deepq.networks.cnn import CNNEncoder, conv_output_size

__all__ = ["CNNEncoder", "conv_output_size"]
