# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Packaging of completed chains into output formats.

The chain drivers in :py:mod:`tinygibbs.model.sampling` produce one list of
states per chain. This module turns those lists into the formats requested by
:py:class:`OutputMode`:

    - **Tensor**: a mapping from variable name to one array holding every draw
      of every chain. A variable whose value has shape ``value_shape`` becomes
      an array of shape ``value_shape + (n_draws, n_chains)``.
    - **Tabular**: a :py:class:`pandas.DataFrame` with one row per draw (chain 0
      first) and one column per scalar component. Array-valued variables are
      flattened in C order into columns named ``name[i,j,...]``.
    - **States**: the raw chains, unchanged.

Assembly never modifies the chains it is given. A failed assembly raises a
subclass of :py:class:`~tinygibbs.exceptions.AssemblyError` and leaves the raw
draws available for another attempt in a different mode.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import pandas as pd

from tinygibbs import utils
from tinygibbs.defaults import DEFAULT_CHAIN_DIM, DEFAULT_DRAW_DIM
from tinygibbs.exceptions import ShapeMismatchError, TypeMismatchError

if TYPE_CHECKING:
    from tinygibbs import custom_types


class OutputMode(Enum):
    """Output formats for sampled chains."""

    TENSOR = "tensor"
    """Mapping from variable name to an array of shape ``value_shape + (n_draws, n_chains)``."""

    TABULAR = "tabular"
    """:py:class:`pandas.DataFrame` with one row per draw and one column per scalar component."""

    STATES = "states"
    """The raw chains: one list of states per chain."""


def _variable_names(chains: list["custom_types.Chain"]) -> tuple[str, ...]:
    """Variable names in the key order of the first recorded state."""
    for chain in chains:
        if chain:
            return tuple(chain[0])
    return ()


def _gather(
    chains: list["custom_types.Chain"], name: str
) -> list[list[npt.NDArray]]:
    """Collect the values of one variable as arrays, chain by chain."""
    try:
        return [[np.asarray(state[name]) for state in chain] for chain in chains]
    except KeyError as error:
        raise ShapeMismatchError(
            f"Variable '{name}' is missing from some of the recorded states."
        ) from error


def assemble_tensors(
    chains: list["custom_types.Chain"],
) -> dict[str, npt.NDArray]:
    """Stack the draws of every variable into one array per variable.

    :param chains: One list of states per chain
    :type chains: list[custom_types.Chain]

    :returns: Mapping from variable name to an array of shape
        ``value_shape + (n_draws, n_chains)``. Scalars thus give
        ``(n_draws, n_chains)`` and length-``k`` vectors ``(k, n_draws, n_chains)``.
        Empty chains give an empty mapping.
    :rtype: dict[str, npt.NDArray]

    :raises ShapeMismatchError: If chains differ in length, or if a variable's
        shape differs between draws or chains
    """
    if len({len(chain) for chain in chains}) > 1:
        raise ShapeMismatchError(
            "All chains must have the same number of draws to be assembled as "
            f"tensors; got lengths {[len(chain) for chain in chains]}."
        )

    tensors = {}
    for name in _variable_names(chains):
        values = _gather(chains, name)
        shape = values[0][0].shape
        if bad_shapes := {
            v.shape for chain_values in values for v in chain_values
        } - {shape}:
            raise ShapeMismatchError(
                f"Variable '{name}' has inconsistent shapes across draws: expected "
                f"{shape}, also found {sorted(bad_shapes)}."
            )

        # value_shape + (n_draws,) per chain, then value_shape + (n_draws, n_chains)
        tensors[name] = np.stack(
            [np.stack(chain_values, axis=-1) for chain_values in values], axis=-1
        )

    return tensors


def assemble_table(chains: list["custom_types.Chain"]) -> pd.DataFrame:
    """Flatten the draws of every chain into a table.

    Rows are draws, chain 0 first, indexed by a ``(chain, draw)``
    :py:class:`pandas.MultiIndex`. Columns follow the key order of the first
    recorded state. Scalar variables give one column named after the variable.
    Array-valued variables give one column per component, named ``name[i,j,...]``
    with zero-based indices in C order. Chains may differ in length.

    :param chains: One list of states per chain
    :type chains: list[custom_types.Chain]

    :returns: The table of draws
    :rtype: pd.DataFrame

    :raises ShapeMismatchError: If a variable's shape differs between draws
    :raises TypeMismatchError: If the numeric kind of a variable (bool,
        integer, float, ...) differs between draws
    """
    index = pd.MultiIndex.from_tuples(
        [
            (chain_ind, draw_ind)
            for chain_ind, chain in enumerate(chains)
            for draw_ind in range(len(chain))
        ],
        names=[DEFAULT_CHAIN_DIM, DEFAULT_DRAW_DIM],
    )

    columns = {}
    for name in _variable_names(chains):
        values = [v for chain_values in _gather(chains, name) for v in chain_values]
        shape, kind = values[0].shape, values[0].dtype.kind

        # Every draw must agree with the first on shape and kind
        for value in values:
            if value.shape != shape:
                raise ShapeMismatchError(
                    f"Variable '{name}' has inconsistent shapes across draws: "
                    f"expected {shape}, found {value.shape}."
                )
            if value.dtype.kind != kind:
                raise TypeMismatchError(
                    f"Variable '{name}' has inconsistent types across draws: "
                    f"expected dtype kind '{kind}', found '{value.dtype.kind}' "
                    f"({value.dtype})."
                )

        # One row per draw, one column per component in C order
        flat = np.stack(values).reshape(len(values), -1)
        for col_ind, (colname, _) in enumerate(utils.iter_components(name, shape)):
            columns[colname] = flat[:, col_ind]

    return pd.DataFrame(columns, index=index)


def assemble(
    chains: list["custom_types.Chain"],
    mode: Union[OutputMode, str] = OutputMode.TENSOR,
):
    """Package chains in the requested output format.

    :param chains: One list of states per chain
    :type chains: list[custom_types.Chain]
    :param mode: Output format. Strings are converted with :py:class:`OutputMode`.
        Defaults to ``OutputMode.TENSOR``.
    :type mode: Union[OutputMode, str]

    :returns: The assembled output. See :py:class:`OutputMode`.

    :raises ValueError: If ``mode`` is not a known output mode
    :raises AssemblyError: If the chains cannot be packaged as requested
    """
    mode = OutputMode(mode)
    if mode is OutputMode.TENSOR:
        return assemble_tensors(chains)
    elif mode is OutputMode.TABULAR:
        return assemble_table(chains)
    elif mode is OutputMode.STATES:
        return chains
    else:
        raise ValueError(f"Unknown output mode: {mode}")
