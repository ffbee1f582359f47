# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the TinyGibbs package.

This module provides various utility functions that support the core
functionality of TinyGibbs, including:

    - Lazy importing mechanisms to break circular imports
    - Construction and splitting of NumPy random generators
    - Naming of the scalar components of array-valued variables

Users will not typically need to interact with this module directly--it is designed
to be used internally by TinyGibbs.
"""

from __future__ import annotations

import importlib.util
import sys

from typing import Iterator, TYPE_CHECKING

import numpy as np

import tinygibbs

from tinygibbs.defaults import DEFAULT_COMPONENT_NAME_FORMAT

if TYPE_CHECKING:
    from tinygibbs import custom_types


def lazy_import(name: str):
    """Import a module only when it is first needed.

    This function implements lazy module importing to defer module loading
    until actual use. Within TinyGibbs it is used to break the circular
    dependency between the model builder and the compiler.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.

    .. note::
        As with a regular import, the module is bound as an attribute of its
        parent package, so ``tinygibbs.model.compiler`` resolves by attribute
        access whichever way the module was first imported.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return _bind_to_parent(name, sys.modules[name])

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return _bind_to_parent(name, module)


def _bind_to_parent(name: str, module):
    """Set a submodule as an attribute of its parent package, if it has one."""
    parent, _, child = name.rpartition(".")
    if parent and not hasattr(sys.modules[parent], child):
        setattr(sys.modules[parent], child, module)
    return module


def get_random_generator(
    seed: "custom_types.SeedType" = None,
) -> np.random.Generator:
    """Build a :py:class:`~numpy.random.Generator` from a suitable seed.

    :param seed: Seed to build the generator from. A ``Generator`` is returned
        as is (its stream is advanced by the caller's draws). An int or
        ``SeedSequence`` seeds a fresh generator. ``None`` returns the global
        :py:data:`tinygibbs.RNG`.
    :type seed: custom_types.SeedType

    :returns: The random generator to draw from
    :rtype: np.random.Generator

    :raises TypeError: If ``seed`` is a legacy ``RandomState``, whose seeding
        strategy does not allow spawning independent streams.
    """
    if isinstance(seed, np.random.RandomState):
        raise TypeError(
            "Cannot create a random Generator from a RandomState object. "
            "Please provide a random seed, SeedSequence or Generator instead."
        )
    if seed is None:
        return tinygibbs.RNG
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def spawn_generators(
    rng: np.random.Generator, n: "custom_types.Integer"
) -> list[np.random.Generator]:
    """Split a generator into ``n`` statistically independent child generators.

    Children are derived from the parent's ``SeedSequence``: the i-th child of
    a given spawn call depends only on the parent seed, the number of spawns
    already made from the parent, and ``i``. It does not depend on ``n``, so
    chain ``i`` receives the same stream for any ``n_chains >= 2``. Single-chain
    runs do not spawn and draw from the parent generator itself.

    :param rng: Parent generator
    :type rng: np.random.Generator
    :param n: Number of children
    :type n: custom_types.Integer

    :returns: Child generators, one per chain
    :rtype: list[np.random.Generator]
    """
    if n < 1:
        raise ValueError(f"Cannot spawn {n} generators; need at least one.")
    return rng.spawn(int(n))


def component_index(index: tuple[int, ...]) -> str:
    """Format the position of an array component as a comma-separated string.

    :param index: Zero-based position of the component
    :type index: tuple[int, ...]

    :returns: The formatted index, e.g. ``"1,2"``
    :rtype: str
    """
    return ",".join(str(i) for i in index)


def iter_components(
    name: str, shape: tuple[int, ...]
) -> Iterator[tuple[str, tuple[int, ...]]]:
    """Iterate over the scalar components of a variable with the given shape.

    Scalars (empty shape) yield the bare variable name. Arrays yield one entry
    per component, in C order, named with
    :py:data:`~tinygibbs.defaults.DEFAULT_COMPONENT_NAME_FORMAT`.

    :param name: Variable name
    :type name: str
    :param shape: Shape of the variable's value
    :type shape: tuple[int, ...]

    :returns: Iterator of ``(column name, index)`` pairs
    :rtype: Iterator[tuple[str, tuple[int, ...]]]

    Example:
        >>> list(iter_components("x", (2,)))
        [('x[0]', (0,)), ('x[1]', (1,))]
    """
    if shape == ():
        yield name, ()
        return

    for index in np.ndindex(*shape):
        yield DEFAULT_COMPONENT_NAME_FORMAT.format(
            name=name, index=component_index(index)
        ), index
