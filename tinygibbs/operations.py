# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Mathematical operations for use in TinyGibbs model expressions.

This module provides the functions used to write conditional distributions
beyond plain arithmetic (e.g., ``sin``, ``log``, ``inv``). Operations are built
from :py:class:`~tinygibbs.model.components.transformations.Transformation`
classes and handle both deferred computation within model expressions and
immediate computation on NumPy data. This module should be the access point to
all operations available in TinyGibbs--users should not need to directly
interact with the underlying transformation classes.

Example:
    >>> import tinygibbs as tg
    >>> a, = tg.variables("a")
    >>> z = tg.operations.sin(a)       # deferred: an expression node
    >>> tg.operations.sin(0.0)         # immediate: 0.0
"""

from __future__ import annotations

from tinygibbs.model.components import expressions, transformations

# pylint: disable=line-too-long


class MetaOperation(type):
    """Metaclass for dynamically creating operation classes.

    Validates that a ``DISTCLASS`` attribute is provided and is a
    :py:class:`~tinygibbs.model.components.transformations.Transformation`,
    then copies the transformation's documentation onto the ``__call__``
    method of the new class.

    :raises ValueError: If ``DISTCLASS`` is not provided in class attributes
    :raises TypeError: If ``DISTCLASS`` is not a subclass of ``Transformation``
    """

    def __new__(mcs, name, bases, attrs):

        # There must be a DISTCLASS in the class_attrs
        if "DISTCLASS" not in attrs:
            raise ValueError("DISTCLASS must be provided in class_attrs")

        # The DISTCLASS must be a subclass of Transformation
        if not issubclass(attrs["DISTCLASS"], transformations.Transformation):
            raise TypeError("DISTCLASS must be a subclass of Transformation")

        return super().__new__(mcs, name, bases, attrs)

    def __init__(cls, name, bases, attrs):

        super().__init__(name, bases, attrs)

        # Create a new call method that runs the inherited call method but that
        # uses DISTCLASS's docstring
        def __call__(self, *args, **kwargs):
            return super(cls, self).__call__(*args, **kwargs)

        cls.__call__ = __call__
        cls.__call__.__doc__ = cls.DISTCLASS.__doc__


class Operation:
    """Base class for TinyGibbs mathematical operations.

    The class should never be instantiated directly. Use
    :py:func:`build_operation` to create operation instances from
    :py:class:`~tinygibbs.model.components.transformations.Transformation`
    classes.

    :cvar DISTCLASS: The transformation class this operation wraps.
    :type DISTCLASS: type[transformations.Transformation]
    """

    DISTCLASS: type[transformations.Transformation]

    def __call__(self, *args, **kwargs):
        """Apply the operation to the provided inputs.

        If any argument is a model expression, a new transformation node is
        returned for evaluation when the model runs. Otherwise the operation is
        computed immediately and its value is returned.
        """
        node = self.__class__.DISTCLASS(*args, **kwargs)
        if any(
            isinstance(arg, expressions.Expression)
            for arg in (*args, *kwargs.values())
        ):
            return node

        return expressions.evaluate_constant(node)


def build_operation(
    distclass: type[transformations.Transformation],
) -> Operation:
    """Build an operation instance from a Transformation class.

    :param distclass: The transformation class to build the operation from.
    :type distclass: type[transformations.Transformation]

    :returns: A new operation instance that wraps the provided class.
    :rtype: Operation

    Example:

    .. code-block:: python

       from tinygibbs.operations import build_operation
       from tinygibbs.model.components.transformations import UnaryTransformation

       class Square(UnaryTransformation):
           OPERATOR = "square"

           def run_np_op(self, dist1):
               return dist1**2

       square = build_operation(Square)
    """
    return MetaOperation(
        distclass.__name__.lower(),
        (Operation,),
        {"DISTCLASS": distclass, "__doc__": distclass.__doc__},
    )()


# Define our operations
abs_ = build_operation(transformations.AbsExpression)
"""Absolute value. See :py:class:`~tinygibbs.model.components.transformations.AbsExpression`."""

exp = build_operation(transformations.ExpExpression)
"""Exponential. See :py:class:`~tinygibbs.model.components.transformations.ExpExpression`."""

log = build_operation(transformations.LogExpression)
"""Natural logarithm. See :py:class:`~tinygibbs.model.components.transformations.LogExpression`."""

log1p = build_operation(transformations.Log1pExpression)
"""``log(1 + x)``. See :py:class:`~tinygibbs.model.components.transformations.Log1pExpression`."""

sqrt = build_operation(transformations.SqrtExpression)
"""Square root. See :py:class:`~tinygibbs.model.components.transformations.SqrtExpression`."""

sin = build_operation(transformations.SinExpression)
"""Sine. See :py:class:`~tinygibbs.model.components.transformations.SinExpression`."""

cos = build_operation(transformations.CosExpression)
"""Cosine. See :py:class:`~tinygibbs.model.components.transformations.CosExpression`."""

tanh = build_operation(transformations.TanhExpression)
"""Hyperbolic tangent. See :py:class:`~tinygibbs.model.components.transformations.TanhExpression`."""

sum_ = build_operation(transformations.SumExpression)
"""Sum, optionally along one axis. See :py:class:`~tinygibbs.model.components.transformations.SumExpression`.

    **Usage:**

    .. code-block:: python

      y, mu = tg.variables("y", "mu")
      sse = tg.operations.sum_((y - mu) ** 2)
      row_totals = tg.operations.sum_(y, axis=1)
"""

inv = build_operation(transformations.InverseExpression)
"""Matrix inverse. See :py:class:`~tinygibbs.model.components.transformations.InverseExpression`."""

transpose = build_operation(transformations.TransposeExpression)
"""Transpose. See :py:class:`~tinygibbs.model.components.transformations.TransposeExpression`."""

diag = build_operation(transformations.DiagExpression)
"""Diagonal. See :py:class:`~tinygibbs.model.components.transformations.DiagExpression`."""

outer = build_operation(transformations.OuterExpression)
"""Outer product. See :py:class:`~tinygibbs.model.components.transformations.OuterExpression`."""

dot = build_operation(transformations.DotExpression)
"""Dot product. See :py:class:`~tinygibbs.model.components.transformations.DotExpression`.

    **Usage:**

    .. code-block:: python

      # Bayesian linear regression: posterior precision of the coefficients
      X, tau = tg.variables("X", "tau")
      precision = tau * tg.operations.dot(X.T, X) + np.eye(3)
"""
