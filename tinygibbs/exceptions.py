# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Custom exception classes for the TinyGibbs package.

This module defines the hierarchy of exceptions raised by TinyGibbs. All of
them inherit from :py:class:`TinyGibbsError` so that callers can catch every
package-specific failure with a single except clause.

Errors fall into three groups:

    - **Model definition errors**, raised when a model is compiled. These cover
      name collisions and references to names the model does not define.
    - **Execution errors**, raised while a sweep runs. The only one owned by
      TinyGibbs is :py:class:`MissingStateKeyError`. Failures of the underlying
      SciPy distributions (e.g., a negative scale) propagate unchanged.
    - **Assembly errors**, raised when completed chains cannot be packaged into
      the requested output shape.

None of these are caught or retried inside TinyGibbs.
"""


class TinyGibbsError(Exception):
    """Base class for all exceptions in the TinyGibbs package.

    Example:
        >>> try:
        ...     tensors = tg.sample(rng, sampler, 1000)
        ... except TinyGibbsError as e:
        ...     print(f"TinyGibbs error occurred: {e}")
    """


class ModelDefinitionError(TinyGibbsError):
    """Raised when a model's statement list cannot be compiled.

    Typical causes are a sampled variable sharing its name with an auxiliary
    data argument, an intermediate value shadowing a sampled variable, or a
    model without any sampling statements.
    """


class UndefinedVariableError(ModelDefinitionError):
    """Raised when an expression references a name the model does not define.

    A name is defined if it is sampled somewhere in the model, declared as an
    auxiliary data argument, or assigned as an intermediate value by an earlier
    statement of the same sweep.
    """


class MissingStateKeyError(TinyGibbsError, KeyError):
    """Raised when a sweep needs a state entry that is not present.

    Every sampled variable must have a value in the state handed to the compiled
    step. The check happens before any draw is made, so a failing sweep never
    produces a partially updated state.

    :param missing: Names of the missing variables
    :type missing: tuple[str, ...]
    """

    def __init__(self, *missing: str):
        self.missing = missing
        super().__init__(
            f"State is missing values for sampled variable(s): {', '.join(missing)}"
        )

    def __str__(self) -> str:
        # KeyError quotes its argument; we want the plain message
        return self.args[0]


class AssemblyError(TinyGibbsError):
    """Base class for errors raised while packaging chains into an output shape.

    The raw draws are untouched by a failed assembly. Callers who obtained them
    via :py:func:`~tinygibbs.model.sampling.run_chains` can retry with a
    different :py:class:`~tinygibbs.model.results.assembly.OutputMode`.
    """


class ShapeMismatchError(AssemblyError):
    """Raised when a variable changes shape between draws or chains differ in length."""


class TypeMismatchError(AssemblyError):
    """Raised when the numeric kind of a tabular column is not consistent across draws."""
