# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Core model components for TinyGibbs.

This submodule contains the building blocks of model statements: expression
nodes that reference variables and fixed values, the deterministic
transformations that combine them, and the distributions that sampling
statements draw from.
"""
