# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
TinyGibbs: A micro-framework for writing and running Gibbs samplers.

TinyGibbs turns a list of hand-derived conditional distributions into a
reusable single-sweep update procedure and runs that procedure to build
Markov chains. The user states, for every sampled variable, the distribution
it should be drawn from given the current values of everything else; TinyGibbs
takes care of threading the state through the sweep, splitting random streams
between chains, running chains in parallel, and packaging the resulting draws.

Key Features:
    - Declarative model construction with an explicit statement list
    - Global, dependency-aware variable substitution at compile time
    - Deterministic multi-chain execution (serial or threaded)
    - Tensor-mapping and tabular (pandas) chain outputs
    - Distributions backed by SciPy

Global Variables:
    RNG: Global random number generator used when no generator is supplied
    __version__: Package version string

Example:
    >>> import tinygibbs as tg
    >>> model = tg.GibbsModel("normal_gamma", data=("y", "n"))
    >>> mu, tau, y, n = model.variables("mu", "tau", "y", "n")
    >>> model.sample(
    ...     "mu", tg.Normal(mu=tg.operations.sum_(y) / n, sigma=1 / tg.operations.sqrt(n * tau))
    ... )
    >>> model.sample(
    ...     "tau", tg.Gamma(alpha=1 + n / 2, beta=1 + tg.operations.sum_((y - mu) ** 2) / 2)
    ... )
    >>> sampler = model.build({"mu": 0.0, "tau": 1.0}, data, len(data))
    >>> tensors = tg.sample(42, sampler, 1000, n_chains=4)
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("tinygibbs")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for TinyGibbs.

This generator is used by the chain driver whenever a caller does not provide
a generator or seed of their own. It can be reseeded with :py:func:`manual_seed`.

:type: np.random.Generator
"""

# Get custom types if TYPE_CHECKING is True
if TYPE_CHECKING:
    from tinygibbs import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for the global random number generator.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import tinygibbs as tg
        >>> tg.manual_seed(42)
        >>> # Runs without an explicit generator are now reproducible
        >>> tensors = tg.sample(None, sampler, 100)
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from tinygibbs import operations, utils
from tinygibbs.exceptions import (
    AssemblyError,
    MissingStateKeyError,
    ModelDefinitionError,
    ShapeMismatchError,
    TinyGibbsError,
    TypeMismatchError,
    UndefinedVariableError,
)
from tinygibbs.model.components.distributions import (
    Bernoulli,
    Beta,
    Binomial,
    Dirichlet,
    Exponential,
    Gamma,
    HalfNormal,
    InverseGamma,
    InverseWishart,
    LogNormal,
    Multinomial,
    MultivariateNormal,
    Normal,
    Poisson,
    Uniform,
    Wishart,
)
from tinygibbs.model.components.expressions import Literal, Variable, variables
from tinygibbs.model.compiler import CompiledStep, compile_model
from tinygibbs.model.model import AssignStatement, GibbsModel, SampleStatement
from tinygibbs.model.results.assembly import (
    OutputMode,
    assemble,
    assemble_table,
    assemble_tensors,
)
from tinygibbs.model.sampler import GibbsSampler, step
from tinygibbs.model.sampling import run_chains, sample

# ArviZ-backed conversions are only loaded when first used
inference = utils.lazy_import("tinygibbs.model.results.inference")
