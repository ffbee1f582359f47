# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Chain execution for TinyGibbs samplers.

This module runs one or more Markov chains by repeatedly applying
:py:func:`~tinygibbs.model.sampler.step`. Two entry points are provided:

    - :py:func:`run_chains` returns the raw draws: one list of states per chain.
    - :py:func:`sample` additionally packages the draws into the requested
      :py:class:`~tinygibbs.model.results.assembly.OutputMode`.

Random streams:
    A single chain draws directly from the generator it is given. When two or
    more chains are run, the generator is split with
    :py:meth:`numpy.random.Generator.spawn` *before* any chain starts and chain
    ``i`` always receives child ``i``. Serial and parallel runs therefore
    produce identical results, whatever the number of worker threads.

Parallelism:
    Parallel runs use a :py:class:`~concurrent.futures.ThreadPoolExecutor`
    with one task per chain. Each task owns its generator exclusively; the
    sampler handle and its data are shared read-only. Results are always
    returned in chain order.

Failures:
    An exception raised by any sweep aborts its chain and the run. In parallel
    runs the other chains stop between sweeps. The exception propagates
    unchanged and no partial result is returned.
"""

from __future__ import annotations

import logging
import threading
import warnings

from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence, TYPE_CHECKING, Union

import numpy as np

from tqdm import tqdm

from tinygibbs import utils
from tinygibbs.defaults import (
    DEFAULT_DISCARD_INITIAL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_N_CHAINS,
    DEFAULT_OUTPUT_MODE,
    DEFAULT_PARALLEL,
    DEFAULT_PROGRESSBAR,
    DEFAULT_THIN,
)
from tinygibbs.model.results import assembly
from tinygibbs.model.sampler import GibbsSampler, step

if TYPE_CHECKING:
    from tinygibbs import custom_types

_log = logging.getLogger(__name__)


def _initial_states(
    sampler: GibbsSampler,
    initial_state: Union[None, "custom_types.State", Sequence["custom_types.State"]],
    n_chains: int,
) -> list["custom_types.State"]:
    """Resolve the starting state of every chain."""
    if initial_state is None:
        return [sampler.initial_values] * n_chains
    if isinstance(initial_state, dict):
        return [initial_state] * n_chains
    initial_state = list(initial_state)
    if len(initial_state) != n_chains:
        raise ValueError(
            f"Got {len(initial_state)} initial states for {n_chains} chains."
        )
    return initial_state


def _run_chain(
    rng: np.random.Generator,
    sampler: GibbsSampler,
    n_draws: Union["custom_types.Integer", "custom_types.IsDoneCallback"],
    initial_state: "custom_types.State",
    discard_initial: int,
    thin: int,
    progressbar: bool,
    chain_index: int,
    stop: Optional[threading.Event] = None,
) -> "custom_types.Chain":
    """Run a single chain.

    The first ``discard_initial`` transitions are dropped. After that, the first
    transition is kept and then every ``thin``-th one. With an integer
    ``n_draws`` the chain stops once that many draws are kept; with a callback
    it stops as soon as the callback returns True. A set ``stop`` event ends the
    chain before its next sweep.
    """
    isdone = n_draws if callable(n_draws) else None
    total = None if isdone else discard_initial + max(int(n_draws) - 1, 0) * thin + 1
    if isdone is None and n_draws == 0:
        return []

    draws: list["custom_types.State"] = []
    state = initial_state
    iteration = 0
    with tqdm(
        total=total,
        desc=f"Chain {chain_index}",
        position=chain_index,
        disable=not progressbar,
        leave=True,
    ) as pbar:
        while True:
            if stop is not None and stop.is_set():
                break
            state = step(rng, sampler, state)
            iteration += 1
            pbar.update(1)

            # Keep the transition unless it is burn-in or thinned out
            kept = iteration - discard_initial
            if kept > 0 and (kept - 1) % thin == 0:
                draws.append(state)

            if isdone is None:
                if len(draws) == n_draws:
                    break
            elif isdone(rng, sampler, draws, state, iteration):
                break

    return draws


def run_chains(
    rng: "custom_types.SeedType",
    sampler: GibbsSampler,
    n_draws: Union["custom_types.Integer", "custom_types.IsDoneCallback"],
    n_chains: "custom_types.Integer" = DEFAULT_N_CHAINS,
    parallel: bool = DEFAULT_PARALLEL,
    *,
    max_workers: Optional["custom_types.Integer"] = DEFAULT_MAX_WORKERS,
    discard_initial: "custom_types.Integer" = DEFAULT_DISCARD_INITIAL,
    thin: "custom_types.Integer" = DEFAULT_THIN,
    initial_state: Union[
        None, "custom_types.State", Sequence["custom_types.State"]
    ] = None,
    progressbar: bool = DEFAULT_PROGRESSBAR,
) -> list["custom_types.Chain"]:
    """Run one or more chains and return the raw draws.

    A single chain draws directly from ``rng``, so its draws match a manual loop
    of :py:func:`~tinygibbs.model.sampler.step` calls on the same generator.
    With two or more chains, chain ``i`` draws from the ``i``-th child spawned
    from ``rng``; the only chain of a single-chain run is therefore not the same
    as chain 0 of a multi-chain run.

    If a chain fails during a parallel run, chains that have not started are
    cancelled and running chains stop after their current sweep. The exception
    is re-raised once all workers have returned.

    :param rng: Random generator, or a seed to build one from. None uses the
        global :py:data:`tinygibbs.RNG`. See
        :py:func:`~tinygibbs.utils.get_random_generator`.
    :type rng: custom_types.SeedType
    :param sampler: The sampler handle
    :type sampler: GibbsSampler
    :param n_draws: Number of draws to keep per chain, or a stopping callback
        ``isdone(rng, sampler, draws, state, iteration) -> bool`` evaluated after
        every transition. Callbacks are only supported for single-chain runs.
    :type n_draws: Union[custom_types.Integer, custom_types.IsDoneCallback]
    :param n_chains: Number of independent chains. Defaults to
        :py:data:`~tinygibbs.defaults.DEFAULT_N_CHAINS`.
    :type n_chains: custom_types.Integer
    :param parallel: Whether to run chains concurrently on a thread pool.
        Defaults to :py:data:`~tinygibbs.defaults.DEFAULT_PARALLEL`.
    :type parallel: bool
    :param max_workers: Maximum number of worker threads for parallel runs.
        Defaults to one thread per chain.
    :type max_workers: Optional[custom_types.Integer]
    :param discard_initial: Number of initial transitions to drop as burn-in.
        Defaults to :py:data:`~tinygibbs.defaults.DEFAULT_DISCARD_INITIAL`.
    :type discard_initial: custom_types.Integer
    :param thin: Keep every ``thin``-th transition after burn-in. Defaults to
        :py:data:`~tinygibbs.defaults.DEFAULT_THIN`.
    :type thin: custom_types.Integer
    :param initial_state: Starting state overriding the sampler's initial
        values. Either one state shared by all chains or one per chain.
    :type initial_state: Union[None, custom_types.State, Sequence[custom_types.State]]
    :param progressbar: Whether to display a progress bar per chain. Defaults
        to :py:data:`~tinygibbs.defaults.DEFAULT_PROGRESSBAR`.
    :type progressbar: bool

    :returns: One list of states per chain, in chain order
    :rtype: list[custom_types.Chain]

    :raises ValueError: If a count is out of range, if the number of initial
        states does not match the number of chains, or if a stopping callback
        is combined with several chains
    """
    # Check the arguments
    if n_chains < 1:
        raise ValueError(f"n_chains must be at least 1, got {n_chains}")
    if thin < 1:
        raise ValueError(f"thin must be at least 1, got {thin}")
    if discard_initial < 0:
        raise ValueError(f"discard_initial must be non-negative, got {discard_initial}")
    if callable(n_draws):
        if n_chains != 1:
            raise ValueError("A stopping callback can only be used with a single chain.")
    elif n_draws < 0:
        raise ValueError(f"n_draws must be non-negative, got {n_draws}")
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")

    n_chains = int(n_chains)
    rng = utils.get_random_generator(rng)
    starts = _initial_states(sampler, initial_state, n_chains)

    # Split the stream before any chain starts
    rngs = [rng] if n_chains == 1 else utils.spawn_generators(rng, n_chains)

    chain_kwargs = {
        "sampler": sampler,
        "n_draws": n_draws,
        "discard_initial": int(discard_initial),
        "thin": int(thin),
        "progressbar": progressbar,
    }

    if parallel and n_chains == 1:
        warnings.warn(
            "Parallel sampling was requested for a single chain. Running sequentially."
        )
        parallel = False

    # Sequential execution
    if not parallel:
        _log.info(
            "Sequential sampling (%d chain%s in 1 job)",
            n_chains,
            "s" if n_chains > 1 else "",
        )
        return [
            _run_chain(
                rng=chain_rng, initial_state=start, chain_index=i, **chain_kwargs
            )
            for i, (chain_rng, start) in enumerate(zip(rngs, starts))
        ]

    # Parallel execution. Futures are collected in chain order.
    n_workers = n_chains if max_workers is None else min(int(max_workers), n_chains)
    _log.info("Parallel sampling (%d chains in %d threads)", n_chains, n_workers)
    stop = threading.Event()
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        futures = [
            executor.submit(
                _run_chain,
                rng=chain_rng,
                initial_state=start,
                chain_index=i,
                stop=stop,
                **chain_kwargs,
            )
            for i, (chain_rng, start) in enumerate(zip(rngs, starts))
        ]
        try:
            return [future.result() for future in futures]
        except BaseException:
            # Leaving the executor waits for running chains, so halt them first
            stop.set()
            for future in futures:
                future.cancel()
            raise


def sample(
    rng: "custom_types.SeedType",
    sampler: GibbsSampler,
    n_draws: Union["custom_types.Integer", "custom_types.IsDoneCallback"],
    n_chains: "custom_types.Integer" = DEFAULT_N_CHAINS,
    parallel: bool = DEFAULT_PARALLEL,
    *,
    output: Union[assembly.OutputMode, str] = DEFAULT_OUTPUT_MODE,
    **kwargs,
):
    """Run one or more chains and assemble the draws.

    All arguments other than ``output`` are as for :py:func:`run_chains`.

    :param output: How to package the draws. Defaults to
        :py:data:`~tinygibbs.defaults.DEFAULT_OUTPUT_MODE`.
    :type output: Union[OutputMode, str]

    :returns: For :py:attr:`OutputMode.TENSOR <tinygibbs.model.results.assembly.OutputMode.TENSOR>`,
        a mapping from variable name to an array of shape
        ``value_shape + (n_draws, n_chains)``. For ``TABULAR``, a
        :py:class:`pandas.DataFrame` with one row per draw. For ``STATES``, the
        raw draws as returned by :py:func:`run_chains`.

    :raises AssemblyError: If the draws cannot be packaged as requested. Use
        :py:func:`run_chains` followed by
        :py:func:`~tinygibbs.model.results.assembly.assemble` to keep the raw
        draws available for another attempt.

    Example:
        >>> tensors = sample(42, sampler, 1000, n_chains=4, parallel=True)
        >>> tensors["a"].shape
        (1000, 4)
        >>> df = sample(42, sampler, 1000, n_chains=4, output="tabular")
    """
    # Resolve the output mode first so a bad value fails before sampling
    mode = assembly.OutputMode(output)
    chains = run_chains(rng, sampler, n_draws, n_chains, parallel, **kwargs)
    return assembly.assemble(chains, mode)
