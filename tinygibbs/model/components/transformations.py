# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

r"""Deterministic transformations of TinyGibbs expressions.

This module provides the library of mathematical operations that can be applied
to model expressions. Transformations are created by operator overloading on
:py:class:`~tinygibbs.model.components.expressions.Expression` or through the
:py:mod:`tinygibbs.operations` module; users should not need to instantiate
them directly.

Every transformation implements two methods:

    - ``run_np_op``, computing the operation on NumPy values. The compiler calls
      this once per sweep with the current values of the node's parents.
    - ``write_operation``, rendering the operation as source code given the
      rendered parents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, TYPE_CHECKING

import numpy as np

from tinygibbs.model.components import expressions

if TYPE_CHECKING:
    from tinygibbs import custom_types

# pylint: disable=arguments-differ


class Transformation(expressions.Expression, ABC):
    """Base class for all deterministic operations on expressions.

    :param args: Operands of the transformation. Non-expression operands are
        wrapped in :py:class:`~tinygibbs.model.components.expressions.Literal` nodes.
    :type args: custom_types.ExpressionLike

    :cvar OPERATOR: Operator symbol or function name used when rendering
    :type OPERATOR: str
    """

    OPERATOR: str = ""
    """Operator string or function name for simple operations."""

    def __init__(self, *args: "custom_types.ExpressionLike"):
        self._parents = tuple(expressions.as_expression(arg) for arg in args)

    @property
    def parents(self) -> tuple[expressions.Expression, ...]:
        return self._parents

    @abstractmethod
    def run_np_op(self, *values):
        """Execute the operation on concrete values.

        :param values: Values of the parent expressions, in order

        :returns: Result of the operation
        """

    def write_operation(self, *rendered: str) -> str:
        """Render the operation given the rendered parents.

        :param rendered: Source code of each parent expression
        :type rendered: str

        :returns: Source code for the operation
        :rtype: str

        :raises NotImplementedError: If ``OPERATOR`` is not defined
        """
        if self.OPERATOR == "":
            raise NotImplementedError("The OPERATOR must be defined.")
        return f"{self.OPERATOR}({', '.join(rendered)})"

    def render(self, name_formatter: Callable[[str], str] = str) -> str:
        return self.write_operation(
            *(parent.render(name_formatter) for parent in self.parents)
        )


class BinaryTransformation(Transformation):
    """Base class for infix operations on exactly two expressions.

    Rendered as ``(left OPERATOR right)``.

    :param dist1: Left operand
    :type dist1: custom_types.ExpressionLike
    :param dist2: Right operand
    :type dist2: custom_types.ExpressionLike
    """

    def __init__(
        self,
        dist1: "custom_types.ExpressionLike",
        dist2: "custom_types.ExpressionLike",
    ):
        super().__init__(dist1, dist2)

    @abstractmethod
    def run_np_op(self, dist1, dist2):
        """Execute the binary operation on two concrete values."""

    def write_operation(self, dist1: str, dist2: str) -> str:
        if self.OPERATOR == "":
            raise NotImplementedError("The OPERATOR must be defined.")
        return f"({dist1} {self.OPERATOR} {dist2})"


class UnaryTransformation(Transformation):
    """Base class for operations on exactly one expression.

    Rendered as ``OPERATOR(operand)``.

    :param dist1: Operand
    :type dist1: custom_types.ExpressionLike
    """

    def __init__(self, dist1: "custom_types.ExpressionLike"):
        super().__init__(dist1)

    @abstractmethod
    def run_np_op(self, dist1):
        """Execute the unary operation on a concrete value."""


# Basic arithmetic operations
class AddExpression(BinaryTransformation):
    """Element-wise addition: ``dist1 + dist2``."""

    OPERATOR = "+"

    def run_np_op(self, dist1, dist2):
        return dist1 + dist2


class SubtractExpression(BinaryTransformation):
    """Element-wise subtraction: ``dist1 - dist2``."""

    OPERATOR = "-"

    def run_np_op(self, dist1, dist2):
        return dist1 - dist2


class MultiplyExpression(BinaryTransformation):
    """Element-wise multiplication: ``dist1 * dist2``."""

    OPERATOR = "*"

    def run_np_op(self, dist1, dist2):
        return dist1 * dist2


class DivideExpression(BinaryTransformation):
    """Element-wise division: ``dist1 / dist2``."""

    OPERATOR = "/"

    def run_np_op(self, dist1, dist2):
        return dist1 / dist2


class PowerExpression(BinaryTransformation):
    """Element-wise exponentiation: ``dist1 ** dist2``."""

    OPERATOR = "**"

    def run_np_op(self, dist1, dist2):
        return dist1**dist2


class MatMulExpression(BinaryTransformation):
    """Matrix multiplication: ``dist1 @ dist2``.

    Follows :py:func:`numpy.matmul` semantics, so a matrix times a vector gives
    a vector.
    """

    OPERATOR = "@"

    def run_np_op(self, dist1, dist2):
        return np.matmul(dist1, dist2)


class NegateExpression(UnaryTransformation):
    """Unary negation: ``-dist1``."""

    OPERATOR = "-"

    def run_np_op(self, dist1):
        return -dist1

    def write_operation(self, dist1: str) -> str:
        return f"(-{dist1})"


# Element-wise functions
class AbsExpression(UnaryTransformation):
    """Element-wise absolute value."""

    OPERATOR = "abs"

    def run_np_op(self, dist1):
        return np.abs(dist1)


class LogExpression(UnaryTransformation):
    """Element-wise natural logarithm."""

    OPERATOR = "log"

    def run_np_op(self, dist1):
        return np.log(dist1)


class Log1pExpression(UnaryTransformation):
    """Element-wise ``log(1 + x)``, accurate for small ``x``."""

    OPERATOR = "log1p"

    def run_np_op(self, dist1):
        return np.log1p(dist1)


class ExpExpression(UnaryTransformation):
    """Element-wise exponential."""

    OPERATOR = "exp"

    def run_np_op(self, dist1):
        return np.exp(dist1)


class SqrtExpression(UnaryTransformation):
    """Element-wise square root."""

    OPERATOR = "sqrt"

    def run_np_op(self, dist1):
        return np.sqrt(dist1)


class SinExpression(UnaryTransformation):
    """Element-wise sine."""

    OPERATOR = "sin"

    def run_np_op(self, dist1):
        return np.sin(dist1)


class CosExpression(UnaryTransformation):
    """Element-wise cosine."""

    OPERATOR = "cos"

    def run_np_op(self, dist1):
        return np.cos(dist1)


class TanhExpression(UnaryTransformation):
    """Element-wise hyperbolic tangent."""

    OPERATOR = "tanh"

    def run_np_op(self, dist1):
        return np.tanh(dist1)


# Reductions
class SumExpression(UnaryTransformation):
    """Sum over all elements, or over one axis if ``axis`` is given.

    :param dist1: Expression to sum
    :type dist1: custom_types.ExpressionLike
    :param axis: Axis to sum over. Defaults to None (all elements).
    :type axis: Optional[int]
    """

    OPERATOR = "sum"

    def __init__(self, dist1: "custom_types.ExpressionLike", axis: int | None = None):
        super().__init__(dist1)
        self.axis = axis

    def run_np_op(self, dist1):
        return np.sum(dist1, axis=self.axis)

    def write_operation(self, dist1: str) -> str:
        if self.axis is None:
            return f"sum({dist1})"
        return f"sum({dist1}, axis={self.axis})"


# Linear algebra
class InverseExpression(UnaryTransformation):
    """Matrix inverse."""

    OPERATOR = "inv"

    def run_np_op(self, dist1):
        return np.linalg.inv(dist1)


class TransposeExpression(UnaryTransformation):
    """Matrix transpose. Reverses all axes."""

    OPERATOR = "transpose"

    def run_np_op(self, dist1):
        return np.transpose(dist1)


class DiagExpression(UnaryTransformation):
    """Diagonal matrix from a vector, or diagonal vector from a matrix."""

    OPERATOR = "diag"

    def run_np_op(self, dist1):
        return np.diag(dist1)


class OuterExpression(BinaryTransformation):
    """Outer product of two vectors."""

    OPERATOR = "outer"

    def run_np_op(self, dist1, dist2):
        return np.outer(dist1, dist2)

    def write_operation(self, dist1: str, dist2: str) -> str:
        return f"outer({dist1}, {dist2})"


class DotExpression(BinaryTransformation):
    """Dot product following :py:func:`numpy.dot`."""

    OPERATOR = "dot"

    def run_np_op(self, dist1, dist2):
        return np.dot(dist1, dist2)

    def write_operation(self, dist1: str, dist2: str) -> str:
        return f"dot({dist1}, {dist2})"


# Indexing
class IndexExpression(UnaryTransformation):
    """Static indexing into an expression, e.g. ``x[0]`` or ``sigma[:, 1]``.

    The index is fixed when the model is defined; indexing with another
    expression is not supported.

    :param dist1: Expression to index
    :type dist1: custom_types.ExpressionLike
    :param key: NumPy-style index
    :type key: Union[int, slice, tuple]
    """

    def __init__(self, dist1: "custom_types.ExpressionLike", key):
        if isinstance(key, expressions.Expression) or (
            isinstance(key, tuple)
            and any(isinstance(k, expressions.Expression) for k in key)
        ):
            raise TypeError("Indices must be fixed values, not model expressions")
        super().__init__(dist1)
        self.key = key

    def run_np_op(self, dist1):
        return dist1[self.key]

    def write_operation(self, dist1: str) -> str:
        return f"{dist1}[{_format_key(self.key)}]"


def _format_key(key) -> str:
    """Render a NumPy index the way it would be written between brackets."""

    def format_one(k):
        if isinstance(k, slice):
            start = "" if k.start is None else k.start
            stop = "" if k.stop is None else k.stop
            step = "" if k.step is None else f":{k.step}"
            return f"{start}:{stop}{step}"
        if k is Ellipsis:
            return "..."
        if k is None:
            return "None"
        return repr(k)

    if isinstance(key, tuple):
        return ", ".join(format_one(k) for k in key)
    return format_one(key)
