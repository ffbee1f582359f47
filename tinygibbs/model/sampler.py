# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Sampler handles and the single-step driver.

A :py:class:`GibbsSampler` bundles everything needed to advance a chain: the
compiled sweep, the auxiliary data it is called with, and the state chains start
from. Handles are built once with
:py:meth:`GibbsModel.build() <tinygibbs.model.model.GibbsModel.build>` and can
be reused for any number of runs; they hold no mutable sampling state.

:py:func:`step` performs exactly one transition and is the building block of
the chain drivers in :py:mod:`tinygibbs.model.sampling`.
"""

from __future__ import annotations

from typing import Callable, Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from tinygibbs import custom_types


class GibbsSampler:
    """A compiled sweep bundled with auxiliary data and an initial state.

    :param initial_values: State chains start from unless another initial state
        is given when sampling
    :type initial_values: custom_types.State
    :param draw: The compiled sweep, called as ``draw(rng, state, *data)``
    :type draw: Callable
    :param data: Auxiliary data passed unchanged to every sweep
    :type data: tuple

    .. note::
        Neither the initial values nor the data are copied. The compiled sweep
        never modifies its inputs, so sharing them between chains is safe as
        long as the caller does not mutate them while a run is in progress.
    """

    def __init__(
        self,
        initial_values: "custom_types.State",
        draw: Callable,
        data: tuple = (),
    ):
        self.initial_values = initial_values
        self.draw = draw
        self.data = tuple(data)

    @property
    def sampled_varnames(self) -> tuple[str, ...]:
        """Names of the variables updated by the sweep, if known."""
        return getattr(self.draw, "sampled_varnames", tuple(self.initial_values))

    def __repr__(self) -> str:
        return (
            f"<GibbsSampler: {getattr(self.draw, 'name', self.draw)} with "
            f"{len(self.data)} data argument(s)>"
        )


def step(
    rng: np.random.Generator,
    sampler: GibbsSampler,
    state: Optional["custom_types.State"] = None,
) -> "custom_types.State":
    """Perform one Gibbs sweep.

    Given the same generator position and input state, the result is identical
    bit for bit. The input state is never modified. If the sweep fails (e.g.,
    a SciPy distribution rejects its parameters), the exception propagates and
    no new state is produced.

    :param rng: Random generator consumed by the sweep's draws
    :type rng: np.random.Generator
    :param sampler: The sampler handle
    :type sampler: GibbsSampler
    :param state: The current state. If None, the sampler's initial values are
        used, which makes this the first transition of a chain.
    :type state: Optional[custom_types.State]

    :returns: The next state
    :rtype: custom_types.State

    :raises MissingStateKeyError: If the state lacks a sampled variable

    Example:
        >>> rng = np.random.default_rng(1)
        >>> state = step(rng, sampler)
        >>> state = step(rng, sampler, state)
    """
    if state is None:
        state = sampler.initial_values
    return sampler.draw(rng, state, *sampler.data)
