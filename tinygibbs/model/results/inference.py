# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Conversion of assembled tensors to xarray and ArviZ objects.

Tensor outputs store draws as ``value_shape + (n_draws, n_chains)``, keeping the
value dimensions first. The scientific Python ecosystem expects the opposite
convention, ``(chain, draw) + value_shape``. The functions here move the axes
and build :py:class:`xarray.Dataset` and :py:class:`arviz.InferenceData`
objects so that the usual diagnostics (R-hat, ESS, MCSE) can be run on TinyGibbs
output.

This module is imported lazily from the package root as ``tinygibbs.inference``.

Example:
    >>> tensors = tg.sample(42, sampler, 1000, n_chains=4)
    >>> idata = tg.inference.to_inference_data(tensors)
    >>> tg.inference.summarize(tensors)
"""

from __future__ import annotations

from typing import Union

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from tinygibbs.defaults import DEFAULT_CHAIN_DIM, DEFAULT_DRAW_DIM


def to_chain_major(tensor: npt.NDArray) -> npt.NDArray:
    """Move the trailing ``(draw, chain)`` axes of a tensor to the front.

    :param tensor: Array of shape ``value_shape + (n_draws, n_chains)``
    :type tensor: npt.NDArray

    :returns: View of shape ``(n_chains, n_draws) + value_shape``
    :rtype: npt.NDArray
    """
    return np.moveaxis(tensor, [-1, -2], [0, 1])


def to_xarray(tensors: dict[str, npt.NDArray]) -> xr.Dataset:
    """Convert assembled tensors to an xarray Dataset.

    Every variable gets the dimensions ``(chain, draw, <name>_dim_0, ...)``.

    :param tensors: Output of :py:func:`~tinygibbs.model.results.assembly.assemble_tensors`
    :type tensors: dict[str, npt.NDArray]

    :returns: Dataset with integer ``chain`` and ``draw`` coordinates
    :rtype: xr.Dataset
    """
    data_vars = {}
    for name, tensor in tensors.items():
        dims = [DEFAULT_CHAIN_DIM, DEFAULT_DRAW_DIM] + [
            f"{name}_dim_{i}" for i in range(tensor.ndim - 2)
        ]
        data_vars[name] = (dims, to_chain_major(tensor))

    coords = {}
    if tensors:
        n_draws, n_chains = next(iter(tensors.values())).shape[-2:]
        coords = {
            DEFAULT_CHAIN_DIM: np.arange(n_chains),
            DEFAULT_DRAW_DIM: np.arange(n_draws),
        }

    return xr.Dataset(data_vars, coords=coords)


def to_inference_data(tensors: dict[str, npt.NDArray]) -> az.InferenceData:
    """Convert assembled tensors to an ArviZ InferenceData posterior group.

    :param tensors: Output of :py:func:`~tinygibbs.model.results.assembly.assemble_tensors`
    :type tensors: dict[str, npt.NDArray]

    :returns: InferenceData whose ``posterior`` group holds every variable
    :rtype: az.InferenceData
    """
    return az.from_dict(
        posterior={name: to_chain_major(tensor) for name, tensor in tensors.items()}
    )


def summarize(
    tensors: dict[str, npt.NDArray], **kwargs
) -> Union[pd.DataFrame, xr.Dataset]:
    """Summary statistics and convergence diagnostics for assembled tensors.

    :param tensors: Output of :py:func:`~tinygibbs.model.results.assembly.assemble_tensors`
    :type tensors: dict[str, npt.NDArray]
    :param kwargs: Passed on to :py:func:`arviz.summary`

    :returns: One row per scalar component with mean, sd, HDI, MCSE, ESS and R-hat
    :rtype: Union[pd.DataFrame, xr.Dataset]
    """
    return az.summary(to_inference_data(tensors), **kwargs)
