"""Tests for JAX DQN: networks, config, agent and target-network handling."""

import dataclasses

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
import optax
import pytest

from deepq.algorithms.dqn import (
    DQN,
    ConvQNetwork,
    DQNConfig,
    DQNState,
    QNetwork,
    build_q_network,
    make_optimizer,
)
from deepq.dataprotocol.replay_buffer import ReplayBuffer
from deepq.dataprotocol.transition import Transition
from deepq.errors import ConfigError

_SMALL_CNN = dict(cnn_channels=(8,), cnn_kernels=(3,), cnn_strides=(1,), cnn_hidden=32)


def _tree_equal(a, b) -> bool:
    return all(
        jnp.array_equal(x, y)
        for x, y in zip(jax.tree.leaves(a), jax.tree.leaves(b), strict=True)
    )


def _batch(n: int = 16, obs_dim: int = 4, n_actions: int = 2, seed: int = 0) -> Transition:
    k1, k2, k3, k4 = jax.random.split(jax.random.PRNGKey(seed), 4)
    return Transition(
        obs=jax.random.normal(k1, (n, obs_dim)),
        action=jax.random.randint(k2, (n,), 0, n_actions),
        reward=jax.random.uniform(k3, (n,), minval=-1.0, maxval=1.0),
        next_obs=jax.random.normal(k4, (n, obs_dim)),
        done=jnp.zeros(n, dtype=jnp.bool_),
    )


def _tied_network(n_actions: int = 3, bias=(0.0, 1.0, 1.0)) -> QNetwork:
    """Q-network whose output is exactly *bias* for every input."""
    net = QNetwork(obs_dim=4, n_actions=n_actions, hidden_sizes=(8,), key=jax.random.key(0))
    net = jax.tree.map(jnp.zeros_like, net)
    return eqx.tree_at(lambda n: n.layers[-1].bias, net, jnp.array(bias, dtype=jnp.float32))


class TestQNetwork:
    def test_output_shape(self):
        key = jax.random.key(0)
        net = QNetwork(obs_dim=4, n_actions=2, hidden_sizes=(32, 32), key=key)
        assert net(jax.random.normal(key, (4,))).shape == (2,)

    def test_batched_via_vmap(self):
        key = jax.random.key(0)
        net = QNetwork(obs_dim=4, n_actions=2, hidden_sizes=(32, 32), key=key)
        assert jax.vmap(net)(jax.random.normal(key, (8, 4))).shape == (8, 2)

    def test_flattens_input(self):
        key = jax.random.key(1)
        net = QNetwork(obs_dim=6, n_actions=3, key=key)
        assert net(jnp.ones((2, 3))).shape == (3,)


class TestConvQNetwork:
    def test_output_shape(self):
        net = ConvQNetwork(
            (10, 5, 1), 3, channel_sizes=(8,), kernel_sizes=(3,), strides=(1,),
            mlp_hidden=32, key=jax.random.key(0),
        )
        assert net(jnp.zeros((10, 5, 1), dtype=jnp.uint8)).shape == (3,)

    def test_build_picks_architecture(self):
        config = DQNConfig(hidden_sizes=(16,), **_SMALL_CNN)
        key = jax.random.key(0)
        assert isinstance(build_q_network((4,), 2, config, key=key), QNetwork)
        assert isinstance(build_q_network((10, 5, 1), 3, config, key=key), ConvQNetwork)
        assert isinstance(build_q_network((2, 10, 5, 1), 3, config, key=key), ConvQNetwork)


class TestDQNConfig:
    def test_defaults(self):
        config = DQNConfig()
        assert config.gamma == 0.99
        assert config.batch_size == 32
        assert config.optimizer == "rmsprop"
        assert config.epsilon_start == 1.0
        assert config.epsilon_final == 0.1

    def test_frozen(self):
        config = DQNConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.lr = 0.01  # type: ignore[misc]

    def test_hashable(self):
        assert hash(DQNConfig()) == hash(DQNConfig())

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"optimizer": "sgd"},
            {"gamma": 1.5},
            {"batch_size": 0},
            {"target_sync_interval": 0},
            {"epsilon_decay_span": 0},
            {"epsilon_start": 0.1, "epsilon_final": 0.5},
            {"epsilon_eval": -0.1},
            {"cnn_channels": (32, 64)},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigError):
            DQNConfig(**kwargs)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            DQNConfig(gamma=-1.0)


class TestDQNInit:
    def test_returns_dqn_state(self):
        config = DQNConfig(hidden_sizes=(32, 32))
        state = DQN.init(jax.random.PRNGKey(0), obs_shape=(4,), n_actions=2, config=config)
        assert isinstance(state, DQNState)
        assert int(state.step) == 0

    def test_target_equals_online_but_not_aliased(self):
        config = DQNConfig(hidden_sizes=(32,))
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        assert _tree_equal(state.params, state.target_params)
        for online, target in zip(
            jax.tree.leaves(state.params), jax.tree.leaves(state.target_params), strict=True,
        ):
            assert online is not target

    def test_deterministic_init(self):
        config = DQNConfig(hidden_sizes=(32, 32))
        s1 = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        s2 = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        assert _tree_equal(s1.params, s2.params)

    def test_optimizers(self):
        params = QNetwork(4, 2, (8,), key=jax.random.key(0))
        for name in ("rmsprop", "adam"):
            opt = make_optimizer(DQNConfig(optimizer=name))
            assert opt.init(eqx.filter(params, eqx.is_array)) is not None


class TestDQNAct:
    def _make(self):
        config = DQNConfig(hidden_sizes=(32, 32))
        state = DQN.init(jax.random.PRNGKey(0), obs_shape=(4,), n_actions=2, config=config)
        return state, config

    def test_returns_action_and_state(self):
        state, config = self._make()
        action, new_state = DQN.act(state, jnp.ones(4), 0, config=config)
        assert action.shape == ()
        assert 0 <= int(action) < 2
        assert isinstance(new_state, DQNState)

    def test_greedy_action_deterministic(self):
        state, config = self._make()
        obs = jnp.ones(4)
        a1, _ = DQN.act(state, obs, 0, config=config, explore=False)
        a2, _ = DQN.act(state, obs, 0, config=config, explore=False)
        assert jnp.array_equal(a1, a2)

    def test_greedy_matches_argmax(self):
        state, config = self._make()
        obs = jnp.array([0.3, -1.2, 0.7, 2.0])
        q = DQN.evaluate(state, obs[None])[0]
        action, _ = DQN.act(state, obs, 0, config=config, explore=False)
        assert int(action) == int(jnp.argmax(q))

    def test_rng_advances(self):
        state, config = self._make()
        _, new_state = DQN.act(state, jnp.zeros(4), 0, config=config)
        assert not jnp.array_equal(state.rng, new_state.rng)

    def test_ties_break_to_lowest_index(self):
        net = _tied_network(bias=(0.0, 1.0, 1.0))
        key = jax.random.PRNGKey(0)
        for i in range(5):
            action = DQN.select_action(net, jnp.ones(4), jnp.float32(0.0), jax.random.fold_in(key, i))
            assert int(action) == 1

        all_tied = _tied_network(bias=(0.5, 0.5, 0.5))
        assert int(DQN.select_action(all_tied, jnp.ones(4), jnp.float32(0.0), key)) == 0

    def test_full_exploration_covers_all_actions(self):
        net = _tied_network(bias=(0.0, 0.0, 5.0))
        key = jax.random.PRNGKey(1)
        actions = {
            int(DQN.select_action(net, jnp.ones(4), jnp.float32(1.0), jax.random.fold_in(key, i)))
            for i in range(200)
        }
        assert actions == {0, 1, 2}

    def test_early_steps_explore(self):
        config = DQNConfig(hidden_sizes=(8,), epsilon_start=1.0, epsilon_final=1.0)
        state = DQN.init(jax.random.PRNGKey(0), (4,), 3, config)
        actions = set()
        for _ in range(100):
            action, state = DQN.act(state, jnp.ones(4), 0, config=config)
            actions.add(int(action))
        assert actions == {0, 1, 2}


class TestValuePair:
    def _make(self):
        config = DQNConfig(hidden_sizes=(16,), gamma=0.9, optimizer="adam", lr=1e-2, batch_size=8)
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        return state, config

    def test_evaluate_shapes(self):
        state, _ = self._make()
        obs = jnp.ones((5, 4))
        assert DQN.evaluate(state, obs).shape == (5, 2)
        assert DQN.evaluate(state, obs, network="target").shape == (5, 2)

    def test_evaluate_unknown_network(self):
        state, _ = self._make()
        with pytest.raises(ValueError, match="network"):
            DQN.evaluate(state, jnp.ones((1, 4)), network="shadow")

    def test_terminal_target_is_reward(self):
        state, config = self._make()
        reward = jnp.array([0.5, -1.0, 0.0])
        next_obs = jnp.full((3, 4), 100.0)
        done = jnp.array([True, True, True])
        targets = DQN.compute_targets(state, reward, next_obs, done, config=config)
        np.testing.assert_array_equal(targets, reward)

    def test_non_terminal_target_bootstraps_from_target_network(self):
        state, config = self._make()
        reward = jnp.array([0.5, -1.0])
        next_obs = jax.random.normal(jax.random.PRNGKey(3), (2, 4))
        done = jnp.array([False, True])
        targets = DQN.compute_targets(state, reward, next_obs, done, config=config)
        next_q = DQN.evaluate(state, next_obs, network="target")
        expected0 = 0.5 + 0.9 * float(jnp.max(next_q[0]))
        assert float(targets[0]) == pytest.approx(expected0, rel=1e-5)
        assert float(targets[1]) == -1.0


class TestDQNUpdate:
    def _make(self, **overrides):
        kwargs = dict(hidden_sizes=(32, 32), batch_size=16, optimizer="adam", lr=1e-2)
        kwargs.update(overrides)
        config = DQNConfig(**kwargs)
        state = DQN.init(jax.random.PRNGKey(0), obs_shape=(4,), n_actions=2, config=config)
        return state, _batch(), config

    def test_returns_state_and_metrics(self):
        state, batch, config = self._make()
        new_state, metrics = DQN.learn(state, batch, config=config)
        assert isinstance(new_state, DQNState)
        for value in metrics:
            assert jnp.isfinite(value)

    def test_step_increments(self):
        state, batch, config = self._make()
        new_state, _ = DQN.learn(state, batch, config=config)
        assert int(new_state.step) == 1

    def test_online_changes_target_does_not(self):
        state, batch, config = self._make()
        new_state, _ = DQN.learn(state, batch, config=config)
        assert not _tree_equal(state.params, new_state.params)
        assert _tree_equal(state.target_params, new_state.target_params)

    def test_loss_is_huber(self):
        state, batch, config = self._make()
        targets = jnp.linspace(-3.0, 3.0, 16)
        _, metrics = DQN.update(state, batch.obs, batch.action, targets, config=config)
        q = DQN.evaluate(state, batch.obs)[jnp.arange(16), batch.action]
        expected = jnp.mean(optax.huber_loss(q, targets, delta=1.0))
        assert float(metrics.loss) == pytest.approx(float(expected), rel=1e-5)

    def test_loss_decreases_toward_fixed_targets(self):
        state, batch, config = self._make()
        targets = jnp.full((16,), 0.5)
        _, first = DQN.update(state, batch.obs, batch.action, targets, config=config)
        for _ in range(100):
            state, metrics = DQN.update(state, batch.obs, batch.action, targets, config=config)
        assert float(metrics.loss) < float(first.loss)

    def test_rmsprop_update_finite(self):
        state, batch, config = self._make(optimizer="rmsprop", lr=2.5e-4)
        new_state, metrics = DQN.learn(state, batch, config=config)
        assert jnp.isfinite(metrics.loss)
        assert bool(DQN.params_finite(new_state.params))

    def test_learn_from_replay_buffer(self):
        state, _, config = self._make()
        buf = ReplayBuffer(capacity=64, obs_shape=(4,), seed=0)
        rng = np.random.default_rng(0)
        for _ in range(32):
            buf.push(
                rng.normal(size=4).astype(np.float32), int(rng.integers(2)),
                float(rng.uniform(-1, 1)), rng.normal(size=4).astype(np.float32),
                bool(rng.random() < 0.1),
            )
        new_state, metrics = DQN.learn(state, buf.sample(config.batch_size), config=config)
        assert int(new_state.step) == 1
        assert jnp.isfinite(metrics.loss)

    def test_pixel_observations(self):
        config = DQNConfig(batch_size=4, **_SMALL_CNN)
        state = DQN.init(jax.random.PRNGKey(0), (10, 5, 1), 3, config)
        batch = Transition(
            obs=jnp.zeros((4, 10, 5, 1), dtype=jnp.uint8),
            action=jnp.array([0, 1, 2, 1]),
            reward=jnp.array([0.0, 1.0, -1.0, 0.0]),
            next_obs=jnp.full((4, 10, 5, 1), 255, dtype=jnp.uint8),
            done=jnp.array([False, True, True, False]),
        )
        new_state, metrics = DQN.learn(state, batch, config=config)
        assert jnp.isfinite(metrics.loss)
        action, _ = DQN.act(new_state, batch.obs[0], 0, config=config)
        assert 0 <= int(action) < 3


class TestTargetSync:
    def test_should_sync(self):
        config = DQNConfig(target_sync_interval=4)
        assert [DQN.should_sync(n, config) for n in range(9)] == [
            False, False, False, False, True, False, False, False, True,
        ]

    def test_sync_copies_online(self):
        config = DQNConfig(hidden_sizes=(16,), optimizer="adam", lr=1e-2, batch_size=16)
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        state, _ = DQN.learn(state, _batch(), config=config)
        synced = DQN.sync_target(state)
        assert _tree_equal(synced.params, synced.target_params)

    def test_target_frozen_between_syncs(self):
        config = DQNConfig(
            hidden_sizes=(16,), optimizer="adam", lr=1e-2, batch_size=16, target_sync_interval=3,
        )
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, config)
        initial_target = state.target_params
        batch = _batch()

        synced_target = None
        for i in range(1, 6):
            state, _ = DQN.learn(state, batch, config=config)
            if DQN.should_sync(int(state.step), config):
                state = DQN.sync_target(state)
            if i < 3:
                assert _tree_equal(state.target_params, initial_target)
            if i == 3:
                assert _tree_equal(state.target_params, state.params)
                synced_target = state.target_params

        assert _tree_equal(state.target_params, synced_target)
        assert not _tree_equal(state.target_params, state.params)


class TestParamsFinite:
    def test_finite(self):
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, DQNConfig(hidden_sizes=(8,)))
        assert bool(DQN.params_finite(state.params))

    def test_nan_detected(self):
        state = DQN.init(jax.random.PRNGKey(0), (4,), 2, DQNConfig(hidden_sizes=(8,)))
        broken = eqx.tree_at(
            lambda n: n.layers[0].bias, state.params, jnp.full((8,), jnp.nan),
        )
        assert not bool(DQN.params_finite(broken))
