"""DQN as a set of jitted pure functions over :class:`DQNState`.

Nothing here holds state between calls: every method takes the current
``DQNState`` and, where it changes anything, returns a new one.

Usage::

    config = DQNConfig()
    state = DQN.init(rng, obs_shape=(4,), n_actions=2, config=config)
    action, state = DQN.act(state, obs, global_step, config=config)
    state, metrics = DQN.learn(state, batch, config=config)
    if DQN.should_sync(int(state.step), config):
        state = DQN.sync_target(state)

The online network is the only one that receives gradients.  TD targets
are always built from the target network, which changes only through
``sync_target``.
"""

from __future__ import annotations

from functools import partial
from typing import NamedTuple

import chex
import equinox as eqx
import jax
import jax.numpy as jnp
import optax

from deepq.algorithms.dqn.config import DQNConfig
from deepq.algorithms.dqn.network import build_q_network
from deepq.algorithms.dqn.types import DQNState
from deepq.dataprotocol.transition import Transition
from deepq.schedule import linear_schedule
from deepq.types import Params

_NETWORKS = ("online", "target")


class DQNMetrics(NamedTuple):
    loss: chex.Array
    q_mean: chex.Array
    td_abs_mean: chex.Array
    grad_norm: chex.Array


def make_optimizer(config: DQNConfig) -> optax.GradientTransformation:
    """Gradient clipping followed by RMSProp (Nature DQN) or Adam."""
    if config.optimizer == "rmsprop":
        base = optax.rmsprop(config.lr, decay=0.95, eps=0.01, centered=True)
    else:
        base = optax.adam(config.lr)
    return optax.chain(optax.clip_by_global_norm(config.max_grad_norm), base)


class DQN:
    """Static-method namespace; never instantiated."""

    @staticmethod
    def init(
        rng: chex.PRNGKey,
        obs_shape: tuple[int, ...],
        n_actions: int,
        config: DQNConfig,
    ) -> DQNState:
        """Create initial DQN state with target == online."""
        k_net, k_act = jax.random.split(rng)

        q_net = build_q_network(tuple(obs_shape), n_actions, config, key=k_net)
        opt_state = make_optimizer(config).init(eqx.filter(q_net, eqx.is_array))

        state = DQNState(
            params=q_net,
            target_params=q_net,
            opt_state=opt_state,
            step=jnp.zeros((), dtype=jnp.int32),
            rng=k_act,
        )
        return DQN.sync_target(state)

    # ------------------------------------------------------------------
    # Action selection
    # ------------------------------------------------------------------

    @staticmethod
    def epsilon(step: int | chex.Array, config: DQNConfig) -> chex.Array:
        """Exploration rate at global *step* (pure, stateless)."""
        schedule = linear_schedule(
            config.epsilon_start, config.epsilon_final, config.epsilon_decay_span,
        )
        return schedule(step)

    @staticmethod
    @jax.jit
    def select_action(
        params: Params,
        obs: chex.Array,
        epsilon: chex.Array,
        key: chex.PRNGKey,
    ) -> chex.Array:
        """Epsilon-greedy action for a single observation.

        With probability *epsilon* a uniformly random action, otherwise
        the argmax of the online Q-values.  ``jnp.argmax`` returns the
        first maximal index, so ties resolve to the lowest action.
        """
        key_eps, key_rand = jax.random.split(key)
        q_values = params(obs)
        greedy_action = jnp.argmax(q_values).astype(jnp.int32)
        random_action = jax.random.randint(key_rand, (), 0, q_values.shape[-1])
        use_random = jax.random.uniform(key_eps) < epsilon
        return jnp.where(use_random, random_action, greedy_action)

    @staticmethod
    @partial(jax.jit, static_argnames=("config", "explore"))
    def act(
        state: DQNState,
        obs: chex.Array,
        global_step: int | chex.Array,
        *,
        config: DQNConfig,
        explore: bool = True,
    ) -> tuple[chex.Array, DQNState]:
        """Select an action and advance the agent's PRNG key.

        Args:
            state: Current DQN state.
            obs: Single observation, shape ``(*obs_shape,)``.
            global_step: Environment step driving the epsilon schedule.
            config: DQN hyperparameters (static).
            explore: If True, use the decaying epsilon; otherwise
                ``config.epsilon_eval``.

        Returns:
            ``(action, new_state)``, action being a scalar int32 array.
        """
        rng, key = jax.random.split(state.rng)
        if explore:
            epsilon = DQN.epsilon(global_step, config)
        else:
            epsilon = jnp.float32(config.epsilon_eval)
        action = DQN.select_action(state.params, obs, epsilon, key)
        return action, state._replace(rng=rng)

    # ------------------------------------------------------------------
    # Value approximator pair
    # ------------------------------------------------------------------

    @staticmethod
    @partial(jax.jit, static_argnames=("network",))
    def evaluate(
        state: DQNState,
        obs_batch: chex.Array,
        network: str = "online",
    ) -> chex.Array:
        """Q-values ``(B, n_actions)`` for a batch of observations."""
        if network not in _NETWORKS:
            raise ValueError(f"network must be one of {_NETWORKS}, got {network!r}")
        net = state.params if network == "online" else state.target_params
        return jax.vmap(net)(obs_batch)

    @staticmethod
    @partial(jax.jit, static_argnames=("config",))
    def compute_targets(
        state: DQNState,
        reward: chex.Array,
        next_obs: chex.Array,
        done: chex.Array,
        *,
        config: DQNConfig,
    ) -> chex.Array:
        """TD targets ``r`` (terminal) or ``r + gamma * max_a Q_target(s', a)``."""
        next_q = jax.vmap(state.target_params)(next_obs)
        next_q_max = jnp.max(next_q, axis=-1)
        reward = reward.astype(jnp.float32)
        return jnp.where(
            done.astype(jnp.bool_),
            reward,
            reward + config.gamma * next_q_max,
        )

    @staticmethod
    @partial(jax.jit, static_argnames=("config",))
    def update(
        state: DQNState,
        obs: chex.Array,
        action: chex.Array,
        targets: chex.Array,
        *,
        config: DQNConfig,
    ) -> tuple[DQNState, DQNMetrics]:
        """One gradient step of the online network toward *targets*.

        The loss is the Huber error of ``Q(s, a) - target`` (quadratic
        inside ``[-delta, delta]``, linear outside), which bounds the
        gradient of outlier TD errors.  Target parameters are untouched.
        """
        optimizer = make_optimizer(config)
        targets = jax.lax.stop_gradient(targets)

        def loss_fn(params):
            q_all = jax.vmap(params)(obs)  # (B, n_actions)
            q_values = q_all[jnp.arange(q_all.shape[0]), action.astype(jnp.int32)]
            loss = jnp.mean(optax.huber_loss(q_values, targets, delta=config.huber_delta))
            return loss, q_values

        (loss, q_values), grads = eqx.filter_value_and_grad(loss_fn, has_aux=True)(
            state.params
        )

        updates, new_opt_state = optimizer.update(
            grads, state.opt_state, eqx.filter(state.params, eqx.is_array)
        )
        new_params = eqx.apply_updates(state.params, updates)

        new_state = state._replace(
            params=new_params,
            opt_state=new_opt_state,
            step=state.step + 1,
        )
        metrics = DQNMetrics(
            loss=loss,
            q_mean=jnp.mean(q_values),
            td_abs_mean=jnp.mean(jnp.abs(q_values - targets)),
            grad_norm=optax.global_norm(grads),
        )
        return new_state, metrics

    @staticmethod
    @partial(jax.jit, static_argnames=("config",))
    def learn(
        state: DQNState,
        batch: Transition,
        *,
        config: DQNConfig,
    ) -> tuple[DQNState, DQNMetrics]:
        """Targets from the target network, then one online update."""
        targets = DQN.compute_targets(
            state, batch.reward, batch.next_obs, batch.done, config=config,
        )
        return DQN.update(state, batch.obs, batch.action, targets, config=config)

    @staticmethod
    def sync_target(state: DQNState) -> DQNState:
        """Overwrite the target network with a copy of the online network."""
        target = jax.tree.map(jnp.copy, state.params)
        return state._replace(target_params=target)

    @staticmethod
    def should_sync(update_count: int, config: DQNConfig) -> bool:
        """True after every ``target_sync_interval``-th learning update."""
        return update_count > 0 and update_count % config.target_sync_interval == 0

    @staticmethod
    @eqx.filter_jit
    def params_finite(params: Params) -> chex.Array:
        """Scalar bool: every floating-point leaf of *params* is finite."""
        leaves = jax.tree.leaves(eqx.filter(params, eqx.is_inexact_array))
        return jnp.all(jnp.stack([jnp.all(jnp.isfinite(x)) for x in leaves]))
