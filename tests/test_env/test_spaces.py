import jax.numpy as jnp
import numpy as np

from deepq.env.spaces import Box, Discrete, Image


class TestDiscrete:
    def test_contains(self):
        space = Discrete(3)
        assert bool(space.contains(jnp.int32(2)))
        assert not bool(space.contains(jnp.int32(3)))
        assert not bool(space.contains(jnp.int32(-1)))
        assert space.shape == ()


class TestBox:
    def test_scalar_bounds_with_shape(self):
        space = Box(low=0.0, high=1.0, shape=(2,))
        assert space.shape == (2,)
        np.testing.assert_array_equal(space.low, [0.0, 0.0])
        assert bool(space.contains(np.array([0.5, 1.0], dtype=np.float32)))
        assert not bool(space.contains(np.array([0.5, 1.5], dtype=np.float32)))

    def test_array_bounds(self):
        space = Box(low=jnp.zeros((2, 3)), high=jnp.ones((2, 3)))
        assert space.shape == (2, 3)
        assert space.high.shape == (2, 3)

    def test_hashable(self):
        assert hash(Box(0.0, 1.0, (2,))) == hash(Box(0.0, 1.0, (2,)))


class TestImage:
    def test_single_frame(self):
        space = Image(height=10, width=5, channels=1)
        assert space.shape == (10, 5, 1)
        assert space.dtype == jnp.uint8
        assert bool(space.contains(jnp.zeros((10, 5, 1), dtype=jnp.uint8)))
        assert not bool(space.contains(jnp.zeros((5, 10, 1), dtype=jnp.uint8)))

    def test_frame_stack(self):
        assert Image(height=8, width=8, channels=3, frames=4).shape == (4, 8, 8, 3)
