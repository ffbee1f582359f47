# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model construction, compilation and execution for TinyGibbs.

This module provides the machinery that turns a list of hand-derived
conditional distributions into Markov chains. The primary interface is the
:py:class:`~tinygibbs.model.model.GibbsModel` class, which records the
statements of one Gibbs sweep in order.

Models are built from two kinds of statements:

    - :py:class:`Sampling statements <tinygibbs.model.model.SampleStatement>`,
      which draw a variable from a
      :py:mod:`distribution <tinygibbs.model.components.distributions>` whose
      parameters may depend on any other variable of the model.
    - :py:class:`Assignment statements <tinygibbs.model.model.AssignStatement>`,
      which compute intermediate values visible to later statements of the same
      sweep but never stored in the chain.

A typical workflow looks like this:

    1. **Model Definition**: Instantiate a GibbsModel, declare its auxiliary
       data, and add statements.
    2. **Compilation**: :py:mod:`~tinygibbs.model.compiler` resolves every name
       and emits a single-sweep update function.
    3. **Handle Construction**: The compiled sweep is bundled with the data and
       an initial state into a :py:class:`~tinygibbs.model.sampler.GibbsSampler`.
    4. **Sampling**: :py:mod:`~tinygibbs.model.sampling` runs one or more chains,
       sequentially or on a thread pool.
    5. **Assembly**: :py:mod:`~tinygibbs.model.results` packages the draws as
       tensors or tables and converts them for ArviZ.

Example:
    >>> import numpy as np
    >>> import tinygibbs as tg
    >>> model = tg.GibbsModel("regression", data=("x", "y"))
    >>> a, b, x, y = model.variables("a", "b", "x", "y")
    >>> model.sample("a", tg.Normal(mu=x + b, sigma=y**2))
    >>> model.sample("b", tg.Gamma(alpha=abs(a) / 100, beta=abs(a) / 200))
    >>> sampler = model.build({"a": 1.0, "b": 2.0}, 1.0, 0.5)
    >>> tensors = tg.sample(np.random.default_rng(0), sampler, 1000, n_chains=4)
"""
