# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for TinyGibbs package components.

This module centralizes default values used across the package, including
chain execution settings, output formatting, and naming conventions for
assembled results.

The module is organized into logical groups covering:
    - Chain execution defaults
    - Output assembly defaults
    - Naming conventions for dimensions and tabular columns

Default values cannot be programmatically altered. Every value listed here can
be overridden for a single call through the corresponding keyword argument.
"""

from typing import Literal

# Chain execution defaults
DEFAULT_N_CHAINS: int = 1
"""Default number of independent chains to run.

:type: int
"""

DEFAULT_PARALLEL: bool = False
"""Default setting for running multiple chains on a thread pool.

When False, chains are run one after another on the calling thread.

:type: bool
"""

DEFAULT_MAX_WORKERS: int | None = None
"""Default maximum number of worker threads for parallel chain execution.

None lets :py:class:`concurrent.futures.ThreadPoolExecutor` choose, capped at
the number of chains.

:type: int | None
"""

DEFAULT_DISCARD_INITIAL: int = 0
"""Default number of initial transitions discarded as burn-in.

:type: int
"""

DEFAULT_THIN: int = 1
"""Default thinning interval. Every ``DEFAULT_THIN``-th retained transition is kept.

:type: int
"""

DEFAULT_PROGRESSBAR: bool = False
"""Default setting for displaying a tqdm progress bar per chain.

:type: bool
"""

# Output assembly defaults
DEFAULT_OUTPUT_MODE: Literal["tensor", "tabular", "states"] = "tensor"
"""Default output shape returned by :py:func:`~tinygibbs.model.sampling.sample`.

:type: Literal["tensor", "tabular", "states"]
"""

# Naming conventions
DEFAULT_CHAIN_DIM: str = "chain"
"""Name of the chain dimension in xarray/ArviZ outputs and of the chain level
of the tabular row index.

:type: str
"""

DEFAULT_DRAW_DIM: str = "draw"
"""Name of the draw dimension in xarray/ArviZ outputs and of the draw level
of the tabular row index.

:type: str
"""

DEFAULT_COMPONENT_NAME_FORMAT: str = "{name}[{index}]"
"""Format used to name tabular columns for components of array-valued variables.

``index`` is the comma-separated, zero-based position of the component, e.g.
``x[1,2]``.

:type: str
"""
