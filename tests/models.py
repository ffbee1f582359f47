# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Models used across the TinyGibbs tests, with hand-written reference sweeps."""

import copy

import numpy as np
import numpy.testing as npt

from scipy import stats

import tinygibbs as tg


def build_independent_start():
    """``a`` has a fixed conditional; ``b`` depends on an intermediate of ``a``."""
    model = tg.GibbsModel("independent_start")
    a, z = model.variables("a", "z")
    model.sample("a", tg.Normal(mu=0, sigma=1))
    model.assign("z", tg.operations.sin(a))
    model.sample("b", tg.Normal(mu=z, sigma=z**2))
    return model


def independent_start_reference(rng, state):
    new_state = copy.deepcopy(state)
    new_state["a"] = stats.norm.rvs(loc=0, scale=1, random_state=rng)
    z = np.sin(new_state["a"])
    new_state["b"] = stats.norm.rvs(loc=z, scale=z**2, random_state=rng)
    return new_state


def build_coupled():
    """Every conditional depends on the other variables."""
    model = tg.GibbsModel("coupled")
    a, b, z = model.variables("a", "b", "z")
    model.sample("a", tg.Normal(mu=b, sigma=z**2))
    model.sample("b", tg.Normal(mu=a / 2, sigma=1))
    model.sample("z", tg.Gamma(alpha=a**2, beta=b**2))
    return model


def coupled_reference(rng, state):
    new_state = copy.deepcopy(state)
    new_state["a"] = stats.norm.rvs(
        loc=new_state["b"], scale=new_state["z"] ** 2, random_state=rng
    )
    new_state["b"] = stats.norm.rvs(loc=new_state["a"] / 2, scale=1, random_state=rng)
    new_state["z"] = stats.gamma.rvs(
        a=new_state["a"] ** 2, scale=1 / new_state["b"] ** 2, random_state=rng
    )
    return new_state


def build_with_data():
    """Conditionals that read auxiliary data ``x`` and ``y``."""
    model = tg.GibbsModel("with_data", data=("x", "y"))
    a, b, x, y = model.variables("a", "b", "x", "y")
    model.sample("a", tg.Normal(mu=x + b, sigma=y**2))
    model.sample("b", tg.Gamma(alpha=abs(a) / 100, beta=abs(a) / 200))
    return model


def with_data_reference(rng, state, x, y):
    new_state = copy.deepcopy(state)
    new_state["a"] = stats.norm.rvs(loc=x + new_state["b"], scale=y**2, random_state=rng)
    new_state["b"] = stats.gamma.rvs(
        a=np.abs(new_state["a"]) / 100,
        scale=1 / (np.abs(new_state["a"]) / 200),
        random_state=rng,
    )
    return new_state


def build_vector():
    """A vector-valued variable updated as a block, plus a scalar."""
    model = tg.GibbsModel("vector", data=("x",))
    theta, tau, x = model.variables("theta", "tau", "x")
    model.sample(
        "theta",
        tg.MultivariateNormal(mu=x * tau, sigma=np.eye(3)),
    )
    model.sample("tau", tg.Gamma(alpha=2, beta=1 + tg.operations.sum_(theta**2)))
    return model


def vector_reference(rng, state, x):
    new_state = copy.deepcopy(state)
    new_state["theta"] = stats.multivariate_normal.rvs(
        mean=x * new_state["tau"], cov=np.eye(3), random_state=rng
    )
    new_state["tau"] = stats.gamma.rvs(
        a=2, scale=1 / (1 + np.sum(new_state["theta"] ** 2)), random_state=rng
    )
    return new_state


def assert_states_equal(actual, expected):
    """States must have the same keys, in the same order, and identical values."""
    assert list(actual) == list(expected)
    for name, value in expected.items():
        npt.assert_array_equal(actual[name], value)


def assert_chains_equal(actual, expected):
    assert len(actual) == len(expected)
    for actual_state, expected_state in zip(actual, expected):
        assert_states_equal(actual_state, expected_state)
