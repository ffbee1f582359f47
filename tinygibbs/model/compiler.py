# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Compilation of TinyGibbs models into single-sweep update functions.

The compiler turns the ordered statement list of a
:py:class:`~tinygibbs.model.model.GibbsModel` into one Gibbs sweep: a function
``sweep(rng, state, *data) -> new_state`` that updates every sampled variable
once, in declaration order.

Compilation happens in three stages:

    1. **Collection**: the names of all sampled variables are gathered from the
       whole statement list.
    2. **Resolution**: every variable reference, anywhere in the model, is bound
       to exactly one scope. Sampled names are read from (and written to) the
       working state, intermediate names are read from the sweep's locals, and
       everything else must be an auxiliary data argument. Because resolution
       is global, a conditional may reference a variable whose sampling
       statement comes later; it then sees that variable's value from the
       previous sweep.
    3. **Emission**: each statement is turned into an instruction operating on
       a sweep frame, and the instructions are closed over by the sweep function.
       The sweep deep-copies its input state before the first instruction runs
       and returns the copy after the last.

Invalid models are rejected here, before any sampling is attempted. See
:py:func:`compile_model` for the rules.

Example:
    >>> compiled = compile_model(model)
    >>> print(compiled.source)
    def coupled(rng, state):
        new_state = deepcopy(state)
        new_state["a"] = draw(rng, Normal(mu=new_state["b"], sigma=(new_state["z"] ** 2)))
        new_state["b"] = draw(rng, Normal(mu=(new_state["a"] / 2), sigma=1))
        new_state["z"] = draw(rng, Gamma(alpha=(new_state["a"] ** 2), beta=(new_state["b"] ** 2)))
        return new_state
"""

from __future__ import annotations

import copy
import logging

from enum import Enum
from typing import Callable, TYPE_CHECKING

from tinygibbs.exceptions import (
    MissingStateKeyError,
    ModelDefinitionError,
    UndefinedVariableError,
)
from tinygibbs.model.components import expressions, transformations
from tinygibbs.model.model import AssignStatement, GibbsModel, SampleStatement
from tinygibbs.model.sampler import GibbsSampler

if TYPE_CHECKING:
    from tinygibbs import custom_types

_log = logging.getLogger(__name__)


class Scope(Enum):
    """Where the value of a referenced name lives during a sweep."""

    STATE = "state"
    """A sampled variable, stored in the working state."""

    LOCAL = "local"
    """An intermediate value, stored in the sweep's locals."""

    DATA = "data"
    """An auxiliary data argument."""


class _Sweep:
    """Mutable frame of a single sweep."""

    __slots__ = ("rng", "state", "locals", "data")

    def __init__(self, rng, state, data):
        self.rng = rng
        self.state = state
        self.locals = {}
        self.data = data


def _emit_expression(
    expression: expressions.Expression,
    scopes: dict[str, Scope],
    data_positions: dict[str, int],
) -> Callable[[_Sweep], "custom_types.StateValue"]:
    """Build a function evaluating ``expression`` against a sweep frame."""
    if isinstance(expression, expressions.Variable):
        name = expression.name
        scope = scopes[name]
        if scope is Scope.STATE:
            return lambda frame: frame.state[name]
        if scope is Scope.LOCAL:
            return lambda frame: frame.locals[name]
        position = data_positions[name]
        return lambda frame: frame.data[position]

    if isinstance(expression, expressions.Literal):
        value = expression.value
        return lambda frame: value

    if isinstance(expression, transformations.Transformation):
        node = expression
        parents = tuple(
            _emit_expression(parent, scopes, data_positions)
            for parent in node.parents
        )
        return lambda frame: node.run_np_op(*(parent(frame) for parent in parents))

    raise TypeError(f"Cannot compile expression of type {type(expression)}")


def _emit_statement(
    statement: SampleStatement | AssignStatement,
    scopes: dict[str, Scope],
    data_positions: dict[str, int],
) -> Callable[[_Sweep], None]:
    """Build the instruction carrying out one statement on a sweep frame."""
    target = statement.varname

    # x ~ D(args): evaluate the arguments, then draw into the working state
    if isinstance(statement, SampleStatement):
        distribution = statement.distribution
        params = {
            name: _emit_expression(parent, scopes, data_positions)
            for name, parent in distribution.parents.items()
        }

        def sample_instruction(frame):
            frame.state[target] = distribution.draw(
                frame.rng, **{name: param(frame) for name, param in params.items()}
            )

        return sample_instruction

    # z = f(args): evaluate into the sweep's locals
    value = _emit_expression(statement.expression, scopes, data_positions)

    def assign_instruction(frame):
        frame.locals[target] = value(frame)

    return assign_instruction


def _emit_sweep(
    instructions: list[Callable[[_Sweep], None]],
    sampled_varnames: tuple[str, ...],
    data_names: tuple[str, ...],
    name: str,
):
    """Close over the instructions of a model to build its sweep function."""
    n_data = len(data_names)

    def sweep(rng, state, *data):
        if len(data) != n_data:
            raise TypeError(
                f"{name}() takes {n_data} auxiliary data argument(s) "
                f"({', '.join(data_names) or 'none'}) but {len(data)} were given"
            )
        if missing := [v for v in sampled_varnames if v not in state]:
            raise MissingStateKeyError(*missing)

        frame = _Sweep(rng, copy.deepcopy(state), data)
        for instruction in instructions:
            instruction(frame)
        return frame.state

    sweep.__name__ = sweep.__qualname__ = name
    return sweep


def _render_source(
    model: GibbsModel,
    scopes: dict[str, Scope],
) -> str:
    """Render the rewritten sweep as readable Python-like source."""

    def name_formatter(name: str) -> str:
        if scopes[name] is Scope.STATE:
            return f'new_state["{name}"]'
        return name

    lines = [f"def {model.name}({', '.join(('rng', 'state') + model.data_names)}):"]
    lines.append("    new_state = deepcopy(state)")
    for statement in model.statements:
        if isinstance(statement, SampleStatement):
            rhs = statement.distribution.render(name_formatter)
            lines.append(f"    {name_formatter(statement.varname)} = draw(rng, {rhs})")
        else:
            rhs = statement.expression.render(name_formatter)
            lines.append(f"    {statement.varname} = {rhs}")
    lines.append("    return new_state")

    return "\n".join(lines)


def _resolve_scopes(model: GibbsModel) -> dict[str, Scope]:
    """Validate the names of a model and bind each one to its scope.

    :raises ModelDefinitionError: On name collisions or an empty model
    :raises UndefinedVariableError: On references to undefined names
    """
    if len(model.statements) == 0:
        raise ModelDefinitionError(f"Model '{model.name}' has no statements.")

    # Data names must be unique
    data_names = set(model.data_names)
    if len(data_names) != len(model.data_names):
        duplicates = sorted(
            {d for d in model.data_names if model.data_names.count(d) > 1}
        )
        raise ModelDefinitionError(f"Duplicate auxiliary data names: {duplicates}")

    # Sampled names are collected from the whole model up front
    sampled = set(model.sampled_varnames)
    if not sampled:
        raise ModelDefinitionError(
            f"Model '{model.name}' must sample at least one variable."
        )
    if collisions := sorted(sampled & data_names):
        raise ModelDefinitionError(
            f"Sampled variables cannot share names with auxiliary data: {collisions}"
        )
    if shadowing := sorted(
        set(model.intermediate_varnames) & (sampled | data_names)
    ):
        raise ModelDefinitionError(
            f"Intermediate values cannot shadow sampled variables or data: {shadowing}"
        )

    # Bind every reference. Intermediates are only visible after their assignment.
    scopes = {name: Scope.STATE for name in sampled}
    scopes.update({name: Scope.DATA for name in data_names})
    assigned: set[str] = set()
    for statement in model.statements:
        for name in statement.referenced_names():
            if name in sampled or name in data_names or name in assigned:
                continue
            raise UndefinedVariableError(
                f"'{statement}' references '{name}', which is neither a sampled "
                "variable, an auxiliary data argument, nor an intermediate value "
                "assigned earlier in the sweep."
            )
        if isinstance(statement, AssignStatement):
            assigned.add(statement.varname)
            scopes[statement.varname] = Scope.LOCAL

    return scopes


class CompiledStep:
    """A compiled Gibbs sweep.

    Instances are callable with the signature ``(rng, state, *data)`` and return
    a new state in which every sampled variable has been updated once. The input
    state is never modified. Compiled steps hold no mutable sampling state and
    can be shared freely between threads.

    Instances should be created with :py:func:`compile_model` or
    :py:meth:`GibbsModel.compile() <tinygibbs.model.model.GibbsModel.compile>`
    rather than directly.

    :param model: The model that was compiled
    :type model: GibbsModel
    :param function: The sweep function
    :type function: Callable
    :param scopes: Scope of every name referenced by the model
    :type scopes: dict[str, Scope]

    :ivar name: Name of the model
    :ivar data_names: Names of the auxiliary data arguments, in order
    :ivar sampled_varnames: Names of the sampled variables, in order of first sampling
    :ivar source: Readable rendering of the rewritten sweep
    """

    def __init__(
        self,
        model: GibbsModel,
        function: Callable,
        scopes: dict[str, Scope],
    ):
        self.name = model.name
        self.data_names = model.data_names
        self.sampled_varnames = model.sampled_varnames
        self.scopes = scopes
        self.function = function
        self.source = _render_source(model, scopes)

    def __call__(self, rng, state, *data):
        """Run one sweep. See :py:func:`~tinygibbs.model.sampler.step`.

        :raises MissingStateKeyError: If ``state`` lacks a sampled variable
        :raises TypeError: If the number of data arguments is wrong
        """
        return self.function(rng, state, *data)

    def build(
        self,
        initial_values: "custom_types.State",
        *data: "custom_types.AuxiliaryData",
    ) -> GibbsSampler:
        """Bundle the sweep with auxiliary data and an initial state.

        :param initial_values: Starting state of every chain unless overridden
        :type initial_values: custom_types.State
        :param data: Auxiliary data, positionally matching :py:attr:`data_names`
        :type data: custom_types.AuxiliaryData

        :returns: A sampler handle
        :rtype: GibbsSampler

        :raises TypeError: If the number of data arguments is wrong
        """
        if len(data) != len(self.data_names):
            raise TypeError(
                f"Model '{self.name}' expects {len(self.data_names)} auxiliary data "
                f"argument(s) ({', '.join(self.data_names) or 'none'}) but "
                f"{len(data)} were given"
            )
        return GibbsSampler(initial_values, self, data)

    sampler = build

    def __str__(self) -> str:
        return self.source

    def __repr__(self) -> str:
        return f"<CompiledStep: {self.name}({', '.join(self.data_names)})>"


def compile_model(model: GibbsModel) -> CompiledStep:
    """Compile a model into a single-sweep update function.

    The following are rejected with :py:class:`~tinygibbs.exceptions.ModelDefinitionError`:

        - a model without statements, or without any sampling statement
        - duplicate auxiliary data names
        - a sampled variable with the same name as an auxiliary data argument
        - an intermediate value with the same name as a sampled variable or an
          auxiliary data argument

    A reference to a name that is not sampled anywhere in the model, not an
    auxiliary data argument, and not an intermediate assigned by an earlier
    statement raises :py:class:`~tinygibbs.exceptions.UndefinedVariableError`.

    A variable may be sampled by more than one statement; every statement
    updates it in turn. An intermediate may likewise be reassigned.

    :param model: The model to compile
    :type model: GibbsModel

    :returns: The compiled sweep
    :rtype: CompiledStep

    :raises ModelDefinitionError: If the model is invalid
    :raises UndefinedVariableError: If the model references an undefined name
    """
    scopes = _resolve_scopes(model)
    data_positions = {name: i for i, name in enumerate(model.data_names)}

    instructions = [
        _emit_statement(statement, scopes, data_positions)
        for statement in model.statements
    ]
    function = _emit_sweep(
        instructions, model.sampled_varnames, model.data_names, model.name
    )

    _log.debug(
        "Compiled model '%s': %d statement(s), sampled variables %s, data %s",
        model.name,
        len(model.statements),
        list(model.sampled_varnames),
        list(model.data_names),
    )
    return CompiledStep(model, function, scopes)
