# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Checks that the chains of a known model recover its stationary distribution."""

import arviz as az
import numpy as np
import pytest

import tinygibbs as tg

RHO = 0.5
N_DRAWS = 2000
N_CHAINS = 4
SEEDS = (11, 12, 13, 14, 15)


def build_bivariate_normal():
    """Standard bivariate normal with correlation ``RHO``, one coordinate at a time."""
    model = tg.GibbsModel("bivariate_normal")
    x, y = model.variables("x", "y")
    sigma = float(np.sqrt(1 - RHO**2))
    model.sample("x", tg.Normal(mu=RHO * y, sigma=sigma))
    model.sample("y", tg.Normal(mu=RHO * x, sigma=sigma))
    return model


@pytest.fixture(scope="module")
def runs():
    sampler = build_bivariate_normal().build({"x": 3.0, "y": -3.0})
    return [
        tg.sample(seed, sampler, N_DRAWS, n_chains=N_CHAINS, discard_initial=100)
        for seed in SEEDS
    ]


def z_scores(tensors, method, truth):
    idata = tg.inference.to_inference_data(tensors)
    if method == "mean":
        estimate = idata.posterior.mean(dim=["chain", "draw"])
    else:
        estimate = idata.posterior.std(dim=["chain", "draw"])
    mcse = az.mcse(idata, method=method)
    return {
        name: float((estimate[name] - truth) / mcse[name]) for name in ("x", "y")
    }


@pytest.mark.parametrize("method, truth", [("mean", 0.0), ("sd", 1.0)])
def test_marginal_moments(runs, method, truth):
    # Each z-test has a 5% false positive rate, so require a majority of seeds
    passes = {"x": 0, "y": 0}
    for tensors in runs:
        for name, z in z_scores(tensors, method, truth).items():
            passes[name] += abs(z) < 1.96
    assert passes["x"] >= 3
    assert passes["y"] >= 3


def test_effective_sample_size(runs):
    for tensors in runs:
        ess = az.ess(tg.inference.to_inference_data(tensors))
        for name in ("x", "y"):
            assert float(ess[name]) > 0.25 * N_DRAWS * N_CHAINS


def test_correlation(runs):
    for tensors in runs:
        correlation = np.corrcoef(tensors["x"].ravel(), tensors["y"].ravel())[0, 1]
        assert correlation == pytest.approx(RHO, abs=0.1)


def test_chains_forget_starting_point(runs):
    for tensors in runs:
        assert abs(tensors["x"][:, 0].mean()) < 0.2
