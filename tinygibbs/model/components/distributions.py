# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Distribution classes for writing the conditionals of a Gibbs sampler.

This module provides the distributions that appear on the right-hand side of
sampling statements. Each class records its parameters as expressions and
delegates sampling and density evaluation to the corresponding SciPy
distribution; TinyGibbs never reimplements the numerics.

A distribution whose parameters are all constants can be used on its own:

    >>> d = Normal(mu=0.0, sigma=2.0)
    >>> x = d.sample(np.random.default_rng(0))
    >>> d.log_density(x)

Inside a model, parameters may reference other variables; the compiler evaluates
them at every sweep and calls :py:meth:`Distribution.draw` with the results.

The following distributions are currently supported in TinyGibbs:

Continuous Univariate
^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~tinygibbs.model.components.distributions.Normal`
- :py:class:`~tinygibbs.model.components.distributions.HalfNormal`
- :py:class:`~tinygibbs.model.components.distributions.LogNormal`
- :py:class:`~tinygibbs.model.components.distributions.Beta`
- :py:class:`~tinygibbs.model.components.distributions.Gamma`
- :py:class:`~tinygibbs.model.components.distributions.InverseGamma`
- :py:class:`~tinygibbs.model.components.distributions.Exponential`
- :py:class:`~tinygibbs.model.components.distributions.Uniform`

Continuous Multivariate
^^^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~tinygibbs.model.components.distributions.Dirichlet`
- :py:class:`~tinygibbs.model.components.distributions.MultivariateNormal`
- :py:class:`~tinygibbs.model.components.distributions.Wishart`
- :py:class:`~tinygibbs.model.components.distributions.InverseWishart`

Discrete Univariate
^^^^^^^^^^^^^^^^^^^
- :py:class:`~tinygibbs.model.components.distributions.Bernoulli`
- :py:class:`~tinygibbs.model.components.distributions.Binomial`
- :py:class:`~tinygibbs.model.components.distributions.Poisson`

Discrete Multivariate
^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~tinygibbs.model.components.distributions.Multinomial`
"""

from __future__ import annotations

from typing import Callable, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import stats

from tinygibbs.model.components import expressions

if TYPE_CHECKING:
    from tinygibbs import custom_types

# pylint: disable=line-too-long


def _inverse_transform(x):
    """Element-wise inverse (1/x). Defined at module level so it can be pickled."""
    return 1 / x


def _exp_transform(x):
    """Element-wise exponential. Defined at module level so it can be pickled."""
    return np.exp(x)


class Distribution:
    """Base class for all distributions usable in sampling statements.

    Subclasses declare how their parameters map onto a SciPy distribution.
    Parameters may be constants or model expressions; constants listed in
    ``POSITIVE_PARAMS`` are checked for positivity on construction. Parameters
    that depend on variables are only known while a sweep runs and are not
    checked by TinyGibbs--SciPy's own errors propagate unchanged.

    :param params: Distribution parameters (``mu``, ``sigma``, etc. depending on subclass)
    :type params: custom_types.ExpressionLike

    :raises NotImplementedError: If the subclass is missing required class attributes
    :raises TypeError: If required distribution parameters are missing or unknown
        parameters are given
    :raises ValueError: If a constant parameter violates a positivity constraint

    :cvar SCIPY_DIST: Corresponding SciPy distribution object (e.g., ``scipy.stats.norm``)
    :type SCIPY_DIST: Union[stats.rv_continuous, stats.rv_discrete, stats._multivariate.multi_rv_generic]
    :cvar PARAM_TO_SCIPY_NAMES: Maps TinyGibbs parameter names to SciPy keyword names
    :type PARAM_TO_SCIPY_NAMES: dict[str, str]
    :cvar PARAM_TO_SCIPY_TRANSFORMS: Functions converting parameters from the
        TinyGibbs parametrization to SciPy's
    :type PARAM_TO_SCIPY_TRANSFORMS: dict[str, Callable[[npt.NDArray], npt.NDArray]]
    :cvar POSITIVE_PARAMS: Parameters that must be strictly positive
    :type POSITIVE_PARAMS: set[str]
    :cvar DISCRETE: Whether the distribution has a probability mass function
    :type DISCRETE: bool
    """

    SCIPY_DIST = None
    """Corresponding SciPy distribution object (e.g., `scipy.stats.norm`)."""

    PARAM_TO_SCIPY_NAMES: dict[str, str] = {}
    """
    There can be differences in parameter names between TinyGibbs and SciPy. This
    dictionary maps between the two naming conventions. Its keys are also the
    complete list of parameters the distribution accepts.
    """

    PARAM_TO_SCIPY_TRANSFORMS: dict[str, Callable[[npt.NDArray], npt.NDArray]] = {}
    """
    Some distributions are parametrized differently between TinyGibbs and SciPy.
    This dictionary provides transformation functions to convert parameters to
    SciPy's parametrization.
    """

    POSITIVE_PARAMS: set[str] = set()
    """Parameters that must be strictly positive."""

    DISCRETE: bool = False
    """Whether the distribution is discrete (log-pmf) or continuous (log-pdf)."""

    def __init__(self, **params: "custom_types.ExpressionLike"):

        # Confirm that class attributes are set correctly
        if self.SCIPY_DIST is None or not self.PARAM_TO_SCIPY_NAMES:
            raise NotImplementedError(
                "The class attributes SCIPY_DIST and PARAM_TO_SCIPY_NAMES must be defined"
            )

        # Make sure we have the expected parameters
        if missing_params := self.PARAM_TO_SCIPY_NAMES.keys() - params.keys():
            raise TypeError(
                f"Missing parameters {sorted(missing_params)} for {self.__class__.__name__}."
            )
        if extra_params := params.keys() - self.PARAM_TO_SCIPY_NAMES.keys():
            raise TypeError(
                f"Unexpected parameters {sorted(extra_params)} for {self.__class__.__name__}."
            )

        # Record the parameters as expressions, in declaration order
        self._parents: dict[str, expressions.Expression] = {
            name: expressions.as_expression(params[name])
            for name in self.PARAM_TO_SCIPY_NAMES
        }

        # Check constraints on the constant parameters
        for name in self.POSITIVE_PARAMS:
            parent = self._parents[name]
            if expressions.is_constant(parent) and np.any(
                np.asarray(expressions.evaluate_constant(parent)) <= 0
            ):
                raise ValueError(
                    f"Parameter '{name}' of {self.__class__.__name__} must be positive."
                )

    @property
    def parents(self) -> dict[str, expressions.Expression]:
        """Parameter expressions of the distribution, keyed by parameter name."""
        return self._parents

    def referenced_names(self) -> tuple[str, ...]:
        """Names of all variables referenced by the parameters, in order of first use."""
        return tuple(
            dict.fromkeys(
                name
                for parent in self._parents.values()
                for name in parent.referenced_names()
            )
        )

    def to_scipy_kwargs(self, **values) -> dict[str, "custom_types.StateValue"]:
        """Translate parameter values to the keyword arguments SciPy expects.

        :param values: Concrete parameter values keyed by TinyGibbs name

        :returns: Keyword arguments for the SciPy distribution
        :rtype: dict[str, custom_types.StateValue]
        """
        return {
            self.PARAM_TO_SCIPY_NAMES[name]: self.PARAM_TO_SCIPY_TRANSFORMS.get(
                name, lambda x: x
            )(value)
            for name, value in values.items()
        }

    def draw(self, rng: np.random.Generator, **values) -> "custom_types.StateValue":
        """Draw one value given concrete parameter values.

        This is the hook the compiled sweep calls for every sampling statement.
        It performs exactly one ``rvs`` call on the SciPy distribution, so the
        consumption of the random stream is the same as calling SciPy by hand.

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param values: Concrete parameter values keyed by TinyGibbs name

        :returns: The sampled value
        :rtype: custom_types.StateValue
        """
        return self.SCIPY_DIST.rvs(**self.to_scipy_kwargs(**values), random_state=rng)

    def log_density_at(self, value, **values) -> "custom_types.StateValue":
        """Evaluate the log density (or log mass) given concrete parameter values.

        :param value: Point at which to evaluate the density
        :param values: Concrete parameter values keyed by TinyGibbs name

        :returns: Log density of ``value``
        :rtype: custom_types.StateValue
        """
        scipy_kwargs = self.to_scipy_kwargs(**values)
        if self.DISCRETE:
            return self.SCIPY_DIST.logpmf(value, **scipy_kwargs)
        return self.SCIPY_DIST.logpdf(value, **scipy_kwargs)

    def _constant_values(self) -> dict[str, "custom_types.StateValue"]:
        """Evaluate all parameters, which must not reference any variable."""
        return {
            name: expressions.evaluate_constant(parent)
            for name, parent in self._parents.items()
        }

    def sample(
        self, rng: Optional[np.random.Generator] = None
    ) -> "custom_types.StateValue":
        """Draw one value from a distribution with constant parameters.

        :param rng: Random generator to draw from. Defaults to a fresh,
            unseeded generator.
        :type rng: Optional[np.random.Generator]

        :returns: The sampled value
        :rtype: custom_types.StateValue

        :raises ValueError: If any parameter references a model variable
        """
        return self.draw(
            np.random.default_rng() if rng is None else rng, **self._constant_values()
        )

    def log_density(self, value) -> "custom_types.StateValue":
        """Log density (or log mass) of ``value`` under a distribution with
        constant parameters.

        :param value: Point at which to evaluate the density

        :returns: Log density of ``value``
        :rtype: custom_types.StateValue

        :raises ValueError: If any parameter references a model variable
        """
        return self.log_density_at(value, **self._constant_values())

    def render(self, name_formatter: Callable[[str], str] = str) -> str:
        """Render the distribution as source code.

        :param name_formatter: Function mapping variable names to the text that
            stands in their place
        :type name_formatter: Callable[[str], str]

        :returns: Source code, e.g. ``Normal(mu=b, sigma=(z ** 2))``
        :rtype: str
        """
        args = ", ".join(
            f"{name}={parent.render(name_formatter)}"
            for name, parent in self._parents.items()
        )
        return f"{self.__class__.__name__}({args})"

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"<{self.render()}>"


class ContinuousDistribution(Distribution):
    """Base class for continuous distributions."""


class DiscreteDistribution(Distribution):
    """Base class for discrete distributions."""

    DISCRETE = True


class Normal(ContinuousDistribution):
    r"""Normal (Gaussian) distribution.

    :param mu: Location parameter (mean)
    :type mu: custom_types.ExpressionLike
    :param sigma: Scale parameter (standard deviation)
    :type sigma: custom_types.ExpressionLike

    Mathematical Definition:
        .. math::
            P(x | \mu, \sigma) = \frac{1}{\sigma\sqrt{2\pi}} *
            \exp\left(-\frac{((x-\mu)/\sigma)^2}{2}\right)
    """

    POSITIVE_PARAMS = {"sigma"}
    SCIPY_DIST = stats.norm
    PARAM_TO_SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}

    def __init__(
        self,
        *,
        mu: "custom_types.ExpressionLike",
        sigma: "custom_types.ExpressionLike",
    ):
        super().__init__(mu=mu, sigma=sigma)


class HalfNormal(ContinuousDistribution):
    """Half-normal distribution on the positive reals with scale ``sigma``."""

    POSITIVE_PARAMS = {"sigma"}
    SCIPY_DIST = stats.halfnorm
    PARAM_TO_SCIPY_NAMES = {"sigma": "scale"}

    def __init__(self, *, sigma: "custom_types.ExpressionLike"):
        super().__init__(sigma=sigma)


class LogNormal(ContinuousDistribution):
    """Log-normal distribution: ``exp(X)`` for ``X ~ Normal(mu, sigma)``."""

    POSITIVE_PARAMS = {"sigma"}
    SCIPY_DIST = stats.lognorm
    PARAM_TO_SCIPY_NAMES = {"mu": "scale", "sigma": "s"}
    PARAM_TO_SCIPY_TRANSFORMS = {"mu": _exp_transform}

    def __init__(
        self,
        *,
        mu: "custom_types.ExpressionLike",
        sigma: "custom_types.ExpressionLike",
    ):
        super().__init__(mu=mu, sigma=sigma)


class Beta(ContinuousDistribution):
    """Beta distribution on (0, 1) with shape parameters ``alpha`` and ``beta``."""

    POSITIVE_PARAMS = {"alpha", "beta"}
    SCIPY_DIST = stats.beta
    PARAM_TO_SCIPY_NAMES = {"alpha": "a", "beta": "b"}

    def __init__(
        self,
        *,
        alpha: "custom_types.ExpressionLike",
        beta: "custom_types.ExpressionLike",
    ):
        super().__init__(alpha=alpha, beta=beta)


class Gamma(ContinuousDistribution):
    r"""Gamma distribution with shape ``alpha`` and rate ``beta``.

    Mathematical Definition:
        .. math::
            P(x | \alpha, \beta) = \frac{\beta^\alpha}{\Gamma(\alpha)} *
            x^{\alpha - 1} e^{-\beta x} \text{ for } x > 0

    .. note::
        SciPy parametrizes the gamma distribution by scale, so ``beta`` is
        inverted before sampling.
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    SCIPY_DIST = stats.gamma
    PARAM_TO_SCIPY_NAMES = {"alpha": "a", "beta": "scale"}
    PARAM_TO_SCIPY_TRANSFORMS = {
        "beta": _inverse_transform
    }  # Transform beta to match the scipy distribution's scale parameter

    def __init__(
        self,
        *,
        alpha: "custom_types.ExpressionLike",
        beta: "custom_types.ExpressionLike",
    ):
        super().__init__(alpha=alpha, beta=beta)


class InverseGamma(ContinuousDistribution):
    """Inverse gamma distribution with shape ``alpha`` and scale ``beta``.

    The conjugate conditional for the variance of a normal likelihood.
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    SCIPY_DIST = stats.invgamma
    PARAM_TO_SCIPY_NAMES = {"alpha": "a", "beta": "scale"}

    def __init__(
        self,
        *,
        alpha: "custom_types.ExpressionLike",
        beta: "custom_types.ExpressionLike",
    ):
        super().__init__(alpha=alpha, beta=beta)


class Exponential(ContinuousDistribution):
    """Exponential distribution with rate ``beta``."""

    POSITIVE_PARAMS = {"beta"}
    SCIPY_DIST = stats.expon
    PARAM_TO_SCIPY_NAMES = {"beta": "scale"}
    PARAM_TO_SCIPY_TRANSFORMS = {"beta": _inverse_transform}

    def __init__(self, *, beta: "custom_types.ExpressionLike"):
        super().__init__(beta=beta)


class Uniform(ContinuousDistribution):
    """Continuous uniform distribution on ``[lower, upper]``."""

    SCIPY_DIST = stats.uniform
    PARAM_TO_SCIPY_NAMES = {"lower": "loc", "upper": "scale"}

    def __init__(
        self,
        *,
        lower: "custom_types.ExpressionLike",
        upper: "custom_types.ExpressionLike",
    ):
        super().__init__(lower=lower, upper=upper)

    def to_scipy_kwargs(self, **values) -> dict[str, "custom_types.StateValue"]:
        # SciPy's uniform is parametrized by its width, not its upper bound
        return {"loc": values["lower"], "scale": values["upper"] - values["lower"]}


class Dirichlet(ContinuousDistribution):
    """Dirichlet distribution over the simplex with concentration vector ``alpha``."""

    POSITIVE_PARAMS = {"alpha"}
    SCIPY_DIST = stats.dirichlet
    PARAM_TO_SCIPY_NAMES = {"alpha": "alpha"}

    def __init__(self, *, alpha: "custom_types.ExpressionLike"):
        super().__init__(alpha=alpha)

    def draw(self, rng: np.random.Generator, **values) -> "custom_types.StateValue":
        # SciPy returns a batch of one draw by default
        return super().draw(rng, **values)[0]


class MultivariateNormal(ContinuousDistribution):
    """Multivariate normal distribution with mean vector ``mu`` and covariance ``sigma``.

    The usual block update for a vector of coefficients, e.g. in Bayesian
    linear regression.
    """

    SCIPY_DIST = stats.multivariate_normal
    PARAM_TO_SCIPY_NAMES = {"mu": "mean", "sigma": "cov"}

    def __init__(
        self,
        *,
        mu: "custom_types.ExpressionLike",
        sigma: "custom_types.ExpressionLike",
    ):
        super().__init__(mu=mu, sigma=sigma)


class Wishart(ContinuousDistribution):
    """Wishart distribution over positive-definite matrices.

    :param nu: Degrees of freedom
    :param sigma: Scale matrix
    """

    POSITIVE_PARAMS = {"nu"}
    SCIPY_DIST = stats.wishart
    PARAM_TO_SCIPY_NAMES = {"nu": "df", "sigma": "scale"}

    def __init__(
        self,
        *,
        nu: "custom_types.ExpressionLike",
        sigma: "custom_types.ExpressionLike",
    ):
        super().__init__(nu=nu, sigma=sigma)


class InverseWishart(ContinuousDistribution):
    """Inverse Wishart distribution over positive-definite matrices.

    The conjugate conditional for the covariance matrix of a multivariate
    normal likelihood.

    :param nu: Degrees of freedom
    :param sigma: Scale matrix
    """

    POSITIVE_PARAMS = {"nu"}
    SCIPY_DIST = stats.invwishart
    PARAM_TO_SCIPY_NAMES = {"nu": "df", "sigma": "scale"}

    def __init__(
        self,
        *,
        nu: "custom_types.ExpressionLike",
        sigma: "custom_types.ExpressionLike",
    ):
        super().__init__(nu=nu, sigma=sigma)


class Bernoulli(DiscreteDistribution):
    """Bernoulli distribution with success probability ``theta``."""

    SCIPY_DIST = stats.bernoulli
    PARAM_TO_SCIPY_NAMES = {"theta": "p"}

    def __init__(self, *, theta: "custom_types.ExpressionLike"):
        super().__init__(theta=theta)


class Binomial(DiscreteDistribution):
    """Binomial distribution with ``N`` trials and success probability ``theta``."""

    SCIPY_DIST = stats.binom
    PARAM_TO_SCIPY_NAMES = {"N": "n", "theta": "p"}

    def __init__(
        self,
        *,
        N: "custom_types.ExpressionLike",  # pylint: disable=invalid-name
        theta: "custom_types.ExpressionLike",
    ):
        super().__init__(N=N, theta=theta)


class Poisson(DiscreteDistribution):
    """Poisson distribution with rate ``lambda_``."""

    POSITIVE_PARAMS = {"lambda_"}
    SCIPY_DIST = stats.poisson
    PARAM_TO_SCIPY_NAMES = {"lambda_": "mu"}

    def __init__(self, *, lambda_: "custom_types.ExpressionLike"):
        super().__init__(lambda_=lambda_)


class Multinomial(DiscreteDistribution):
    """Multinomial distribution with ``N`` trials and category probabilities ``theta``."""

    SCIPY_DIST = stats.multinomial
    PARAM_TO_SCIPY_NAMES = {"N": "n", "theta": "p"}

    def __init__(
        self,
        *,
        N: "custom_types.ExpressionLike",  # pylint: disable=invalid-name
        theta: "custom_types.ExpressionLike",
    ):
        super().__init__(N=N, theta=theta)
