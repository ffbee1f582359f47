# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Expression nodes for TinyGibbs model definitions.

This module defines the intermediate representation used to write the right-hand
sides of model statements. Users typically do not build these nodes by hand;
they obtain :py:class:`Variable` references from
:py:meth:`GibbsModel.variables() <tinygibbs.model.model.GibbsModel.variables>`
and combine them with ordinary Python operators and the functions of
:py:mod:`tinygibbs.operations`.

Core Abstractions:

    - **Variable references**: :py:class:`Variable` nodes name another quantity
      of the model. Whether that quantity is a sampled variable, an intermediate
      value, or an auxiliary data argument is only decided when the model is
      compiled.
    - **Literals**: :py:class:`Literal` nodes wrap fixed numbers and arrays.
    - **Transformations**: deterministic operations on other expressions,
      defined in :py:mod:`tinygibbs.model.components.transformations`.

Every node can walk its dependency tree and render itself as readable source
code, which the compiler uses to display the rewritten sweep.
"""

from __future__ import annotations

from typing import Callable, Iterator, TYPE_CHECKING

import numpy as np

from tinygibbs import utils

# Lazy imports to avoid circular imports
transformations = utils.lazy_import("tinygibbs.model.components.transformations")

if TYPE_CHECKING:
    from tinygibbs import custom_types


class Expression:
    """Base class for all nodes of the TinyGibbs expression tree.

    This class enables mathematical operator overloading so that expressions
    can be combined using natural syntax. Each operator creates the appropriate
    :py:class:`~tinygibbs.model.components.transformations.Transformation`
    instance representing the operation; nothing is evaluated until the
    compiled model runs.

    The following Python operators are supported:

    - Addition (``+``), subtraction (``-``)
    - Multiplication (``*``), division (``/``)
    - Exponentiation (``**``)
    - Matrix multiplication (``@``)
    - Unary negation (``-``) and ``abs()``
    - Indexing (``x[0]``, ``x[:, 1]``) and transposition (``x.T``)

    Each binary operation supports both left and right operand positioning,
    enabling expressions with mixed expression and numeric types.

    Example:
        >>> a, b = variables("a", "b")
        >>> mean = (a + b) / 2
        >>> precision = 1 / b**2
    """

    def __add__(self, other: "custom_types.ExpressionLike"):
        return transformations.AddExpression(self, other)

    def __radd__(self, other: "custom_types.ExpressionLike"):
        return transformations.AddExpression(other, self)

    def __sub__(self, other: "custom_types.ExpressionLike"):
        return transformations.SubtractExpression(self, other)

    def __rsub__(self, other: "custom_types.ExpressionLike"):
        return transformations.SubtractExpression(other, self)

    def __mul__(self, other: "custom_types.ExpressionLike"):
        return transformations.MultiplyExpression(self, other)

    def __rmul__(self, other: "custom_types.ExpressionLike"):
        return transformations.MultiplyExpression(other, self)

    def __truediv__(self, other: "custom_types.ExpressionLike"):
        return transformations.DivideExpression(self, other)

    def __rtruediv__(self, other: "custom_types.ExpressionLike"):
        return transformations.DivideExpression(other, self)

    def __pow__(self, other: "custom_types.ExpressionLike"):
        return transformations.PowerExpression(self, other)

    def __rpow__(self, other: "custom_types.ExpressionLike"):
        return transformations.PowerExpression(other, self)

    def __matmul__(self, other: "custom_types.ExpressionLike"):
        return transformations.MatMulExpression(self, other)

    def __rmatmul__(self, other: "custom_types.ExpressionLike"):
        return transformations.MatMulExpression(other, self)

    def __neg__(self):
        return transformations.NegateExpression(self)

    def __abs__(self):
        return transformations.AbsExpression(self)

    def __getitem__(self, key):
        return transformations.IndexExpression(self, key)

    def __iter__(self):
        # Without this, ``__getitem__`` would make every expression an endless iterable
        raise TypeError(f"'{self.__class__.__name__}' object is not iterable")

    # Numpy must defer to our reflected operators (e.g., ``array @ expression``)
    __array_ufunc__ = None

    @property
    def T(self):  # pylint: disable=invalid-name
        """Transpose of the expression. See :py:func:`tinygibbs.operations.transpose`."""
        return transformations.TransposeExpression(self)

    @property
    def parents(self) -> tuple["Expression", ...]:
        """Expressions this node directly depends on. Empty for leaf nodes."""
        return ()

    def walk(self) -> Iterator["Expression"]:
        """Iterate depth-first over this node and every node it depends on.

        :returns: Iterator over the nodes of the expression tree, parents before
            children
        :rtype: Iterator[Expression]
        """
        for parent in self.parents:
            yield from parent.walk()
        yield self

    def referenced_names(self) -> tuple[str, ...]:
        """Names of all variables referenced in the expression, in order of first use.

        :returns: Unique variable names
        :rtype: tuple[str, ...]
        """
        return tuple(
            dict.fromkeys(
                node.name for node in self.walk() if isinstance(node, Variable)
            )
        )

    def render(self, name_formatter: Callable[[str], str] = str) -> str:
        """Render the expression as source code.

        :param name_formatter: Function mapping a variable name to the text that
            should stand in its place. The compiler uses this to show state
            lookups. Defaults to the bare name.
        :type name_formatter: Callable[[str], str]

        :returns: Source-code representation of the expression
        :rtype: str
        """
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.render()}>"


class Variable(Expression):
    """Reference to a named quantity of a model.

    A variable node carries nothing but a name. During compilation the name is
    resolved against the whole model: it becomes a lookup into the working
    state if any statement samples it, a read of an intermediate value if an
    earlier statement assigns it, or a read of an auxiliary data argument if
    the model declares it as data.

    :param name: Name of the referenced quantity. Must be a valid Python identifier.
    :type name: str

    :raises ValueError: If ``name`` is not a valid identifier
    """

    def __init__(self, name: str):
        if not name.isidentifier():
            raise ValueError(f"Variable names must be valid identifiers, got '{name}'")
        self.name = name

    def render(self, name_formatter: Callable[[str], str] = str) -> str:
        return name_formatter(self.name)


class Literal(Expression):
    """A fixed numeric value embedded in an expression.

    Numbers and arrays passed where an expression is expected are wrapped in
    literals automatically. Arrays are stored as read-only copies so that the
    compiled model cannot be changed by mutating the original array afterwards.

    :param value: The wrapped value
    :type value: Union[int, float, np.generic, npt.NDArray]
    """

    def __init__(self, value: "custom_types.ExpressionLike"):
        if isinstance(value, Expression):
            raise TypeError("Literals cannot wrap other expressions")
        if isinstance(value, (list, tuple, np.ndarray)):
            value = np.array(value)
            value.flags.writeable = False
        self.value = value

    def render(self, name_formatter: Callable[[str], str] = str) -> str:
        if isinstance(self.value, np.ndarray):
            if self.value.size <= 6:
                return f"array({self.value.tolist()})"
            return f"array(shape={self.value.shape})"
        return repr(self.value)


def as_expression(value: "custom_types.ExpressionLike") -> Expression:
    """Wrap a value in a :py:class:`Literal` unless it already is an expression.

    :param value: Value to convert
    :type value: custom_types.ExpressionLike

    :returns: The value as an expression node
    :rtype: Expression
    """
    if isinstance(value, Expression):
        return value
    return Literal(value)


def is_constant(expression: Expression) -> bool:
    """Whether an expression can be evaluated without any variable values.

    :param expression: Expression to check
    :type expression: Expression

    :returns: True if no :py:class:`Variable` appears in the expression tree
    :rtype: bool
    """
    return len(expression.referenced_names()) == 0


def evaluate_constant(expression: Expression) -> "custom_types.StateValue":
    """Evaluate an expression that references no variables.

    :param expression: Expression to evaluate
    :type expression: Expression

    :returns: The value of the expression
    :rtype: custom_types.StateValue

    :raises ValueError: If the expression references any variable
    """
    if names := expression.referenced_names():
        raise ValueError(
            f"Cannot evaluate expression '{expression}' outside of a model; it "
            f"references the variable(s) {', '.join(names)}."
        )

    if isinstance(expression, Literal):
        return expression.value

    return expression.run_np_op(
        *(evaluate_constant(parent) for parent in expression.parents)
    )


def variables(*names: str) -> tuple[Variable, ...]:
    """Create variable references for several names at once.

    Names may be given as separate arguments or as a single whitespace- or
    comma-separated string.

    :param names: Names of the variables
    :type names: str

    :returns: One :py:class:`Variable` per name, in order
    :rtype: tuple[Variable, ...]

    Example:
        >>> a, b, z = variables("a", "b", "z")
        >>> x, y = variables("x, y")
    """
    if len(names) == 1:
        names = tuple(names[0].replace(",", " ").split())
    return tuple(Variable(name) for name in names)
