# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import numpy as np
import numpy.testing as npt
import pytest

from scipy import stats

import tinygibbs as tg

from tinygibbs.model.components import distributions


# (distribution, equivalent frozen scipy distribution, evaluation point)
SCALAR_CASES = [
    (tg.Normal(mu=1.0, sigma=2.0), stats.norm(loc=1.0, scale=2.0), 0.3),
    (tg.HalfNormal(sigma=2.0), stats.halfnorm(scale=2.0), 0.3),
    (tg.LogNormal(mu=0.5, sigma=0.7), stats.lognorm(s=0.7, scale=np.exp(0.5)), 1.3),
    (tg.Beta(alpha=2.0, beta=3.0), stats.beta(a=2.0, b=3.0), 0.3),
    (tg.Gamma(alpha=2.0, beta=4.0), stats.gamma(a=2.0, scale=0.25), 0.3),
    (tg.InverseGamma(alpha=3.0, beta=2.0), stats.invgamma(a=3.0, scale=2.0), 0.8),
    (tg.Exponential(beta=2.0), stats.expon(scale=0.5), 0.3),
    (tg.Uniform(lower=-1.0, upper=3.0), stats.uniform(loc=-1.0, scale=4.0), 0.3),
]

DISCRETE_CASES = [
    (tg.Bernoulli(theta=0.3), stats.bernoulli(p=0.3), 1),
    (tg.Binomial(N=10, theta=0.3), stats.binom(n=10, p=0.3), 4),
    (tg.Poisson(lambda_=3.5), stats.poisson(mu=3.5), 2),
]


class TestScalarDistributions:
    @pytest.mark.parametrize("dist, reference, point", SCALAR_CASES + DISCRETE_CASES)
    def test_sample_matches_scipy_stream(self, dist, reference, point):
        expected = reference.rvs(random_state=np.random.default_rng(5))
        assert dist.sample(np.random.default_rng(5)) == expected

    @pytest.mark.parametrize("dist, reference, point", SCALAR_CASES)
    def test_log_density(self, dist, reference, point):
        npt.assert_allclose(dist.log_density(point), reference.logpdf(point))

    @pytest.mark.parametrize("dist, reference, point", DISCRETE_CASES)
    def test_log_mass(self, dist, reference, point):
        npt.assert_allclose(dist.log_density(point), reference.logpmf(point))

    @pytest.mark.parametrize(
        "dist, values, expected",
        [
            (
                tg.Gamma(alpha=1.0, beta=1.0),
                {"alpha": 2.0, "beta": 4.0},
                {"a": 2.0, "scale": 0.25},
            ),
            (tg.Exponential(beta=1.0), {"beta": 2.0}, {"scale": 0.5}),
            (
                tg.Uniform(lower=0.0, upper=1.0),
                {"lower": 1.0, "upper": 3.0},
                {"loc": 1.0, "scale": 2.0},
            ),
            (tg.Poisson(lambda_=1.0), {"lambda_": 2.0}, {"mu": 2.0}),
        ],
    )
    def test_scipy_parametrization(self, dist, values, expected):
        assert dist.to_scipy_kwargs(**values) == expected


class TestMultivariateDistributions:
    def test_dirichlet_returns_single_vector(self):
        draw = tg.Dirichlet(alpha=[1.0, 2.0, 3.0]).sample(np.random.default_rng(0))
        assert draw.shape == (3,)
        npt.assert_allclose(draw.sum(), 1.0)
        npt.assert_allclose(
            tg.Dirichlet(alpha=[1.0, 2.0, 3.0]).log_density(draw),
            stats.dirichlet.logpdf(draw, [1.0, 2.0, 3.0]),
        )

    def test_multivariate_normal(self):
        mean, cov = np.array([1.0, -1.0]), np.array([[1.0, 0.3], [0.3, 2.0]])
        dist = tg.MultivariateNormal(mu=mean, sigma=cov)
        draw = dist.sample(np.random.default_rng(3))
        npt.assert_array_equal(
            draw,
            stats.multivariate_normal.rvs(
                mean=mean, cov=cov, random_state=np.random.default_rng(3)
            ),
        )

    @pytest.mark.parametrize("dist_class", [tg.Wishart, tg.InverseWishart])
    def test_wishart_family_shape(self, dist_class):
        draw = dist_class(nu=5, sigma=np.eye(3)).sample(np.random.default_rng(0))
        assert draw.shape == (3, 3)
        npt.assert_allclose(draw, draw.T)

    def test_multinomial(self):
        draw = tg.Multinomial(N=20, theta=[0.2, 0.3, 0.5]).sample(
            np.random.default_rng(0)
        )
        assert draw.shape == (3,)
        assert draw.sum() == 20


class TestValidation:
    class Located(distributions.Distribution):
        """Normal distribution without keyword-only arguments."""

        SCIPY_DIST = stats.norm
        PARAM_TO_SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}

    def test_missing_parameter(self):
        with pytest.raises(TypeError, match="Missing parameters"):
            self.Located(mu=0.0)

    def test_unexpected_parameter(self):
        with pytest.raises(TypeError, match="Unexpected parameters"):
            self.Located(mu=0.0, sigma=1.0, tau=1.0)

    def test_incomplete_subclass(self):
        class Incomplete(distributions.Distribution):
            PARAM_TO_SCIPY_NAMES = {"mu": "loc"}

        with pytest.raises(NotImplementedError, match="SCIPY_DIST"):
            Incomplete(mu=0.0)

    @pytest.mark.parametrize(
        "build",
        [
            lambda: tg.Normal(mu=0.0, sigma=-1.0),
            lambda: tg.Gamma(alpha=0.0, beta=1.0),
            lambda: tg.Dirichlet(alpha=[1.0, -1.0]),
            lambda: tg.Poisson(lambda_=0),
        ],
    )
    def test_positive_constants(self, build):
        with pytest.raises(ValueError, match="must be positive"):
            build()

    def test_variable_parameters_not_checked(self):
        (sigma,) = tg.variables("sigma")
        dist = tg.Normal(mu=0.0, sigma=-sigma)
        assert dist.referenced_names() == ("sigma",)

    def test_sample_requires_constants(self):
        (mu,) = tg.variables("mu")
        with pytest.raises(ValueError, match="references the variable"):
            tg.Normal(mu=mu, sigma=1.0).sample(np.random.default_rng(0))

    def test_scipy_errors_propagate(self):
        # A negative scale is only detected by SciPy at draw time
        with pytest.raises(ValueError):
            tg.Normal(mu=0.0, sigma=1.0).draw(
                np.random.default_rng(0), mu=0.0, sigma=-1.0
            )


class TestRendering:
    def test_render(self):
        b, z = tg.variables("b", "z")
        assert str(tg.Normal(mu=b, sigma=z**2)) == "Normal(mu=b, sigma=(z ** 2))"

    def test_referenced_names(self):
        a, b = tg.variables("a", "b")
        assert tg.Gamma(alpha=a**2, beta=b / a).referenced_names() == ("a", "b")
