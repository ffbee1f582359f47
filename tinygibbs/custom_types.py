# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for TinyGibbs.

This module provides type aliases and unions used throughout the TinyGibbs
package, covering state values, random sources, model expressions, and chain
containers.

Imports of TinyGibbs modules are conditional on TYPE_CHECKING to avoid circular
imports while maintaining proper type hints for development and documentation
tools.
"""

from typing import Any, Callable, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

# Package components are only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:
    from tinygibbs.model.components import expressions
    from tinygibbs.model.sampler import GibbsSampler

# Scalar types
Integer = Union[int, np.integer]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

# State types
StateValue = Union[bool, int, float, np.generic, npt.NDArray]
"""Type alias for the value of a single variable in a Gibbs state.

Values are either scalars (Python or NumPy) or fixed-shape NumPy arrays.

:type: Union[bool, int, float, np.generic, npt.NDArray]
"""

State = dict[str, StateValue]
"""Type alias for a Gibbs state: a mapping from variable name to value.

:type: dict[str, StateValue]
"""

Chain = list[State]
"""Type alias for a single chain: the ordered list of retained states.

:type: list[State]
"""

# Random source types
SeedType = Union[None, int, np.random.SeedSequence, np.random.Generator]
"""Type alias for anything that can be turned into a random generator.

:type: Union[None, int, np.random.SeedSequence, np.random.Generator]
"""

# Expression types
ExpressionLike = Union["expressions.Expression", int, float, np.generic, npt.NDArray]
"""Type alias for values that can appear as arguments of model expressions.

Plain numbers and arrays are wrapped in
:py:class:`~tinygibbs.model.components.expressions.Literal` nodes.

:type: Union[expressions.Expression, int, float, np.generic, npt.NDArray]
"""

# Stopping criterion for single-chain runs
IsDoneCallback = Callable[
    [np.random.Generator, "GibbsSampler", Chain, State, int], bool
]
"""Type alias for the stopping callback accepted in place of a number of draws.

Called after every transition as ``isdone(rng, sampler, draws, state, iteration)``
where ``iteration`` counts transitions (including discarded ones) starting at 1.

:type: Callable[[np.random.Generator, GibbsSampler, Chain, State, int], bool]
"""

# Anything accepted as auxiliary data
AuxiliaryData = Any
"""Type alias for auxiliary data arguments. These are passed through untouched.

:type: Any
"""
