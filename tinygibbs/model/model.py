# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Core model definition classes for TinyGibbs.

This module contains :py:class:`GibbsModel`, the primary interface for writing
a Gibbs sampler, along with the two statement types a model is made of:

    - :py:class:`SampleStatement` (``x ~ D(...)``): draw ``x`` from ``D`` given the
      current values of the variables ``D`` references.
    - :py:class:`AssignStatement` (``z = f(...)``): compute a deterministic
      intermediate value, usable by later statements of the same sweep but never
      stored in the chain.

Statements are kept in the order they were added; that order is the order of
the updates within a sweep. A model does nothing on its own--it is compiled by
:py:mod:`tinygibbs.model.compiler` into a single-sweep update function, which is
then bundled with auxiliary data and an initial state into a
:py:class:`~tinygibbs.model.sampler.GibbsSampler`.

Example:
    >>> import tinygibbs as tg
    >>> model = tg.GibbsModel("coupled")
    >>> a, b, z = model.variables("a", "b", "z")
    >>> model.sample("a", tg.Normal(mu=b, sigma=z**2))
    >>> model.sample("b", tg.Normal(mu=a / 2, sigma=1))
    >>> model.sample("z", tg.Gamma(alpha=a**2, beta=b**2))
    >>> sampler = model.build({"a": 1.0, "b": 0.5, "z": 10.0})
"""

from __future__ import annotations

from typing import Iterable, Sequence, TYPE_CHECKING, Union

from tinygibbs import utils
from tinygibbs.model.components import distributions, expressions

if TYPE_CHECKING:
    from tinygibbs import custom_types
    from tinygibbs.model.compiler import CompiledStep
    from tinygibbs.model.sampler import GibbsSampler

# Lazy import to avoid circular imports
compiler = utils.lazy_import("tinygibbs.model.compiler")


class SampleStatement:
    """A sampling statement: ``varname ~ distribution``.

    :param varname: Name of the sampled variable
    :type varname: str
    :param distribution: Conditional distribution of the variable
    :type distribution: distributions.Distribution

    :raises ValueError: If ``varname`` is not a valid identifier
    """

    def __init__(self, varname: str, distribution: distributions.Distribution):
        if not varname.isidentifier():
            raise ValueError(f"Variable names must be valid identifiers, got '{varname}'")
        self.varname = varname
        self.distribution = distribution

    def referenced_names(self) -> tuple[str, ...]:
        """Names referenced on the right-hand side of the statement."""
        return self.distribution.referenced_names()

    def __str__(self) -> str:
        return f"{self.varname} ~ {self.distribution}"

    def __repr__(self) -> str:
        return f"<SampleStatement: {self}>"


class AssignStatement:
    """An intermediate-value statement: ``varname = expression``.

    :param varname: Name of the intermediate value
    :type varname: str
    :param expression: Deterministic expression computing the value
    :type expression: custom_types.ExpressionLike

    :raises ValueError: If ``varname`` is not a valid identifier
    """

    def __init__(self, varname: str, expression: "custom_types.ExpressionLike"):
        if not varname.isidentifier():
            raise ValueError(f"Variable names must be valid identifiers, got '{varname}'")
        self.varname = varname
        self.expression = expressions.as_expression(expression)

    def referenced_names(self) -> tuple[str, ...]:
        """Names referenced on the right-hand side of the statement."""
        return self.expression.referenced_names()

    def __str__(self) -> str:
        return f"{self.varname} = {self.expression}"

    def __repr__(self) -> str:
        return f"<AssignStatement: {self}>"


Statement = Union[SampleStatement, AssignStatement]


class GibbsModel:
    """Declarative description of one Gibbs sweep.

    A model has a name, an ordered list of statements, and the names of the
    auxiliary data arguments its sweep takes. Statements are added with the
    fluent :py:meth:`sample` and :py:meth:`assign` methods; both return the
    model so calls can be chained.

    :param name: Name of the model, used when rendering the compiled sweep
    :type name: str
    :param data: Names of the auxiliary data arguments, in the order they will
        be passed to :py:meth:`build`. Defaults to no data.
    :type data: Sequence[str]

    :raises ValueError: If ``name`` or any data name is not a valid identifier

    Example:
        >>> model = GibbsModel("regression", data=("x", "y"))
        >>> a, b, x, y = model.variables("a", "b", "x", "y")
        >>> (
        ...     model.sample("a", Normal(mu=x + b, sigma=y**2))
        ...     .sample("b", Gamma(alpha=abs(a) / 100, beta=abs(a) / 200))
        ... )
    """

    def __init__(self, name: str = "gibbs_model", data: Sequence[str] = ()):
        if not name.isidentifier():
            raise ValueError(f"Model names must be valid identifiers, got '{name}'")
        if bad_names := [d for d in data if not d.isidentifier()]:
            raise ValueError(f"Data names must be valid identifiers, got {bad_names}")

        self.name = name
        self.data_names: tuple[str, ...] = tuple(data)
        self._statements: list[Statement] = []
        self._compiled: CompiledStep | None = None

    @classmethod
    def from_statements(
        cls,
        name: str,
        statements: Iterable[Statement],
        data: Sequence[str] = (),
    ) -> "GibbsModel":
        """Build a model from an existing sequence of statements.

        This is the structured counterpart of the fluent interface, useful for
        front-ends that produce statement lists programmatically.

        :param name: Name of the model
        :type name: str
        :param statements: Statements in sweep order
        :type statements: Iterable[Statement]
        :param data: Names of the auxiliary data arguments. Defaults to none.
        :type data: Sequence[str]

        :returns: The assembled model
        :rtype: GibbsModel
        """
        model = cls(name, data=data)
        for statement in statements:
            model.add_statement(statement)
        return model

    def variables(self, *names: str) -> tuple[expressions.Variable, ...]:
        """Create references to variables for use in this model's statements.

        Equivalent to :py:func:`tinygibbs.model.components.expressions.variables`.
        References are resolved by name only when the model is compiled.

        :param names: Names of the variables
        :type names: str

        :returns: One reference per name, in order
        :rtype: tuple[expressions.Variable, ...]
        """
        return expressions.variables(*names)

    def var(self, name: str) -> expressions.Variable:
        """Create a reference to a single variable. See :py:meth:`variables`."""
        return expressions.Variable(name)

    def add_statement(self, statement: Statement) -> "GibbsModel":
        """Append a statement to the sweep.

        :param statement: Statement to append
        :type statement: Statement

        :returns: The model itself, for chaining
        :rtype: GibbsModel
        """
        if not isinstance(statement, (SampleStatement, AssignStatement)):
            raise TypeError(
                f"Expected a SampleStatement or AssignStatement, got {type(statement)}"
            )
        self._statements.append(statement)
        self._compiled = None
        return self

    def sample(
        self, varname: str, distribution: distributions.Distribution
    ) -> "GibbsModel":
        """Append ``varname ~ distribution`` to the sweep.

        :param varname: Name of the sampled variable
        :type varname: str
        :param distribution: Conditional distribution of the variable given all
            others. It may reference any variable of the model.
        :type distribution: distributions.Distribution

        :returns: The model itself, for chaining
        :rtype: GibbsModel
        """
        return self.add_statement(SampleStatement(varname, distribution))

    def assign(
        self, varname: str, expression: "custom_types.ExpressionLike"
    ) -> "GibbsModel":
        """Append the intermediate value ``varname = expression`` to the sweep.

        :param varname: Name of the intermediate value
        :type varname: str
        :param expression: Expression computing the value
        :type expression: custom_types.ExpressionLike

        :returns: The model itself, for chaining
        :rtype: GibbsModel
        """
        return self.add_statement(AssignStatement(varname, expression))

    def compile(self) -> "CompiledStep":
        """Compile the model into a single-sweep update function.

        The result is cached until another statement is added.

        :returns: The compiled sweep
        :rtype: compiler.CompiledStep

        :raises ModelDefinitionError: If the model is invalid (see
            :py:func:`~tinygibbs.model.compiler.compile_model`)
        """
        if self._compiled is None:
            self._compiled = compiler.compile_model(self)
        return self._compiled

    def build(
        self,
        initial_values: "custom_types.State",
        *data: "custom_types.AuxiliaryData",
    ) -> "GibbsSampler":
        """Compile the model and bundle it with an initial state and auxiliary data.

        :param initial_values: Starting state. Must contain every sampled variable.
        :type initial_values: custom_types.State
        :param data: Auxiliary data, positionally matching the model's data names
        :type data: custom_types.AuxiliaryData

        :returns: A sampler ready to be passed to :py:func:`~tinygibbs.model.sampling.sample`
        :rtype: GibbsSampler
        """
        return self.compile().build(initial_values, *data)

    __call__ = build

    @property
    def statements(self) -> tuple[Statement, ...]:
        """The statements of the sweep, in order."""
        return tuple(self._statements)

    @property
    def sampled_varnames(self) -> tuple[str, ...]:
        """Names of the sampled variables, in order of their first sampling statement."""
        return tuple(
            dict.fromkeys(
                s.varname for s in self._statements if isinstance(s, SampleStatement)
            )
        )

    @property
    def intermediate_varnames(self) -> tuple[str, ...]:
        """Names of the intermediate values, in order of their first assignment."""
        return tuple(
            dict.fromkeys(
                s.varname for s in self._statements if isinstance(s, AssignStatement)
            )
        )

    def __contains__(self, varname: str) -> bool:
        return varname in self.sampled_varnames

    def __len__(self) -> int:
        return len(self._statements)

    def __str__(self) -> str:
        header = f"{self.name}({', '.join(self.data_names)}):"
        if not self._statements:
            return f"{header}\n    <empty>"
        return "\n".join([header] + [f"    {s}" for s in self._statements])
