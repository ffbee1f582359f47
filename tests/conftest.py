# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import numpy as np
import pytest

from tests.models import (
    build_coupled,
    build_independent_start,
    build_vector,
    build_with_data,
)


@pytest.fixture
def independent_start_sampler():
    return build_independent_start().build({"a": 1.0, "b": 1.0})


@pytest.fixture
def coupled_sampler():
    return build_coupled().build({"a": 1.0, "b": 0.5, "z": 10.0})


@pytest.fixture
def with_data_sampler():
    return build_with_data().build({"a": 1.0, "b": 10.0}, -1.0, 1.4)


@pytest.fixture
def vector_sampler():
    return build_vector().build(
        {"theta": np.zeros(3), "tau": 1.0}, np.array([1.0, -2.0, 0.5])
    )
