# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Packaging and analysis of sampled chains.

This submodule turns the raw chains produced by
:py:mod:`tinygibbs.model.sampling` into the formats used for analysis:

   1. :py:mod:`tinygibbs.model.results.assembly`, which stacks draws into
      per-variable tensors or flattens them into a :py:class:`pandas.DataFrame`
      according to an :py:class:`~tinygibbs.model.results.assembly.OutputMode`.
   2. :py:mod:`tinygibbs.model.results.inference`, which converts tensors into
      :py:class:`xarray.Dataset` and :py:class:`arviz.InferenceData` objects
      for convergence diagnostics and summaries.

Users will not typically call the assembly functions directly. Instead, they
are applied by :py:func:`tinygibbs.sample`:

    >>> import tinygibbs as tg
    >>>
    >>> tensors = tg.sample(42, sampler, 1000, n_chains=4)
    >>> df = tg.sample(42, sampler, 1000, n_chains=4, output="tabular")
    >>> summary = tg.inference.summarize(tensors)
"""

from tinygibbs.model.results.assembly import OutputMode
