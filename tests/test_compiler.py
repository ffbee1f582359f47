# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import copy
import logging

import numpy as np
import numpy.testing as npt
import pytest

from scipy import stats
from typeguard import TypeCheckError

import tinygibbs as tg

from tinygibbs.model.compiler import Scope
from tests.models import (
    assert_states_equal,
    build_coupled,
    build_independent_start,
    build_vector,
    build_with_data,
    coupled_reference,
    independent_start_reference,
    vector_reference,
    with_data_reference,
)


class TestStepwiseEquivalence:
    """A compiled sweep must match the hand-written sweep draw for draw."""

    def test_independent_start(self, independent_start_sampler):
        state = {"a": 1.0, "b": 1.0}
        actual = independent_start_sampler.draw(np.random.default_rng(123), state)
        expected = independent_start_reference(np.random.default_rng(123), state)
        assert_states_equal(actual, expected)

    def test_coupled(self, coupled_sampler):
        state = {"a": 1.0, "b": 0.5, "z": 10.0}
        actual = coupled_sampler.draw(np.random.default_rng(123), state)
        expected = coupled_reference(np.random.default_rng(123), state)
        assert_states_equal(actual, expected)

    def test_with_data(self, with_data_sampler):
        state = {"a": 1.0, "b": 10.0}
        actual = with_data_sampler.draw(
            np.random.default_rng(123), state, *with_data_sampler.data
        )
        expected = with_data_reference(np.random.default_rng(123), state, -1.0, 1.4)
        assert_states_equal(actual, expected)

    def test_vector(self, vector_sampler):
        state = {"theta": np.zeros(3), "tau": 1.0}
        x = np.array([1.0, -2.0, 0.5])
        actual = vector_sampler.draw(np.random.default_rng(123), state, x)
        expected = vector_reference(np.random.default_rng(123), state, x)
        assert_states_equal(actual, expected)

    def test_repeated_sweeps(self, with_data_sampler):
        rng, reference_rng = np.random.default_rng(9), np.random.default_rng(9)
        state = reference_state = {"a": 1.0, "b": 10.0}
        for _ in range(10):
            state = with_data_sampler.draw(rng, state, -1.0, 1.4)
            reference_state = with_data_reference(
                reference_rng, reference_state, -1.0, 1.4
            )
            assert_states_equal(state, reference_state)


class TestSubstitution:
    def test_later_variable_reads_previous_sweep(self):
        # ``a`` is drawn before ``b`` but its conditional reads ``b``
        model = tg.GibbsModel("reader")
        a, b = model.variables("a", "b")
        model.sample("a", tg.Normal(mu=b, sigma=1e-12))
        model.sample("b", tg.Normal(mu=100.0, sigma=1e-12))
        new_state = model.compile()(np.random.default_rng(0), {"a": 0.0, "b": -5.0})
        npt.assert_allclose(new_state["a"], -5.0, atol=1e-9)
        npt.assert_allclose(new_state["b"], 100.0, atol=1e-9)

    def test_earlier_variable_reads_new_value(self):
        model = tg.GibbsModel("reader")
        a, b = model.variables("a", "b")
        model.sample("a", tg.Normal(mu=100.0, sigma=1e-12))
        model.sample("b", tg.Normal(mu=a, sigma=1e-12))
        new_state = model.compile()(np.random.default_rng(0), {"a": 0.0, "b": -5.0})
        npt.assert_allclose(new_state["b"], 100.0, atol=1e-9)

    def test_intermediates_are_not_persisted(self, independent_start_sampler):
        new_state = tg.step(np.random.default_rng(0), independent_start_sampler)
        assert list(new_state) == ["a", "b"]

    def test_extra_state_keys_carried_through(self, coupled_sampler):
        state = {"a": 1.0, "b": 0.5, "z": 10.0, "note": np.arange(3)}
        new_state = coupled_sampler.draw(np.random.default_rng(0), state)
        npt.assert_array_equal(new_state["note"], np.arange(3))
        assert new_state["note"] is not state["note"]

    def test_variable_sampled_twice(self):
        model = tg.GibbsModel("twice")
        (a,) = model.variables("a")
        model.sample("a", tg.Normal(mu=10.0, sigma=1e-12))
        model.sample("a", tg.Normal(mu=a + 1, sigma=1e-12))
        new_state = model.compile()(np.random.default_rng(0), {"a": 0.0})
        npt.assert_allclose(new_state["a"], 11.0, atol=1e-9)

    def test_scopes(self):
        compiled = build_independent_start().compile()
        assert compiled.scopes == {
            "a": Scope.STATE,
            "b": Scope.STATE,
            "z": Scope.LOCAL,
        }
        assert build_with_data().compile().scopes["x"] is Scope.DATA


class TestNoAliasing:
    def test_input_state_not_mutated(self, vector_sampler):
        theta = np.zeros(3)
        state = {"theta": theta, "tau": 1.0}
        snapshot = copy.deepcopy(state)
        vector_sampler.draw(np.random.default_rng(0), state, *vector_sampler.data)
        assert_states_equal(state, snapshot)
        assert state["theta"] is theta

    def test_snapshots_do_not_share_arrays(self):
        # ``offset`` is never resampled, so only the deep copy separates the snapshots
        model = tg.GibbsModel("carry")
        model.sample("a", tg.Normal(mu=0.0, sigma=1.0))
        sampler = model.build({"a": 0.0, "offset": np.zeros(2)})
        first = tg.step(np.random.default_rng(0), sampler)
        second = tg.step(np.random.default_rng(0), sampler, first)
        assert first["offset"] is not second["offset"]
        assert first["offset"] is not sampler.initial_values["offset"]

    def test_data_passed_by_reference(self):
        seen = []

        class Recorder(tg.model.components.transformations.UnaryTransformation):
            OPERATOR = "record"

            def run_np_op(self, dist1):
                seen.append(dist1)
                return 0.0

        model = tg.GibbsModel("recorder", data=("x",))
        (x,) = model.variables("x")
        model.sample("a", tg.Normal(mu=Recorder(x), sigma=1.0))
        data = np.arange(3.0)
        sampler = model.build({"a": 0.0}, data)
        tg.step(np.random.default_rng(0), sampler)
        assert seen[0] is data


class TestRuntimeErrors:
    def test_missing_state_key(self, coupled_sampler):
        rng = np.random.default_rng(0)
        with pytest.raises(tg.MissingStateKeyError, match="z") as excinfo:
            coupled_sampler.draw(rng, {"a": 1.0, "b": 0.5})
        assert excinfo.value.missing == ("z",)
        assert isinstance(excinfo.value, KeyError)

    def test_missing_key_checked_before_drawing(self, coupled_sampler):
        rng = np.random.default_rng(0)
        position = copy.deepcopy(rng.bit_generator.state)
        with pytest.raises(tg.MissingStateKeyError):
            coupled_sampler.draw(rng, {"a": 1.0, "b": 0.5})
        assert rng.bit_generator.state == position

    def test_wrong_number_of_data_arguments(self, with_data_sampler):
        with pytest.raises(TypeError, match="2 auxiliary data argument"):
            with_data_sampler.draw(
                np.random.default_rng(0), {"a": 1.0, "b": 1.0}, 1.0
            )

    def test_build_checks_data(self):
        with pytest.raises(TypeError, match="expects 2 auxiliary data"):
            build_with_data().build({"a": 1.0, "b": 1.0})

    def test_distribution_failure_propagates(self):
        model = tg.GibbsModel("failing")
        (s,) = model.variables("s")
        model.sample("s", tg.Normal(mu=0.0, sigma=s))
        with pytest.raises(ValueError):
            model.compile()(np.random.default_rng(0), {"s": -1.0})


class TestDefinitionErrors:
    def test_empty_model(self):
        with pytest.raises(tg.ModelDefinitionError, match="no statements"):
            tg.GibbsModel("empty").compile()

    def test_no_sampled_variables(self):
        model = tg.GibbsModel("only_locals")
        model.assign("z", 1.0)
        with pytest.raises(tg.ModelDefinitionError, match="at least one"):
            model.compile()

    def test_sampled_name_collides_with_data(self):
        model = tg.GibbsModel("collision", data=("a",))
        model.sample("a", tg.Normal(mu=0.0, sigma=1.0))
        with pytest.raises(tg.ModelDefinitionError, match="auxiliary data"):
            model.compile()

    @pytest.mark.parametrize("shadowed", ["a", "x"])
    def test_intermediate_shadows(self, shadowed):
        model = tg.GibbsModel("shadow", data=("x",))
        model.sample("a", tg.Normal(mu=0.0, sigma=1.0))
        model.assign(shadowed, 2.0)
        with pytest.raises(tg.ModelDefinitionError, match="shadow"):
            model.compile()

    def test_duplicate_data_names(self):
        model = tg.GibbsModel("duplicates", data=("x", "x"))
        model.sample("a", tg.Normal(mu=0.0, sigma=1.0))
        with pytest.raises(tg.ModelDefinitionError, match="Duplicate"):
            model.compile()

    def test_undefined_name(self):
        model = tg.GibbsModel("undefined")
        (q,) = model.variables("q")
        model.sample("a", tg.Normal(mu=q, sigma=1.0))
        with pytest.raises(tg.UndefinedVariableError, match="'q'"):
            model.compile()

    def test_intermediate_used_before_assignment(self):
        model = tg.GibbsModel("early")
        (z,) = model.variables("z")
        model.sample("a", tg.Normal(mu=z, sigma=1.0))
        model.assign("z", 1.0)
        with pytest.raises(tg.UndefinedVariableError):
            model.compile()

    def test_undefined_is_definition_error(self):
        assert issubclass(tg.UndefinedVariableError, tg.ModelDefinitionError)

    def test_invalid_names(self):
        with pytest.raises(ValueError):
            tg.GibbsModel("not valid")
        with pytest.raises(ValueError):
            tg.GibbsModel("m", data=("x y",))
        with pytest.raises(ValueError):
            tg.GibbsModel("m").sample("1a", tg.Normal(mu=0.0, sigma=1.0))


class TestCompiledStep:
    def test_source(self):
        source = build_coupled().compile().source
        assert source == "\n".join(
            [
                "def coupled(rng, state):",
                "    new_state = deepcopy(state)",
                '    new_state["a"] = draw(rng, Normal(mu=new_state["b"], sigma=(new_state["z"] ** 2)))',
                '    new_state["b"] = draw(rng, Normal(mu=(new_state["a"] / 2), sigma=1))',
                '    new_state["z"] = draw(rng, Gamma(alpha=(new_state["a"] ** 2), beta=(new_state["b"] ** 2)))',
                "    return new_state",
            ]
        )

    def test_source_with_data_and_locals(self):
        source = str(build_independent_start().compile())
        assert '    z = sin(new_state["a"])' in source
        header = str(build_with_data().compile()).splitlines()[0]
        assert header == "def with_data(rng, state, x, y):"

    def test_compile_is_cached(self):
        model = build_coupled()
        compiled = model.compile()
        assert model.compile() is compiled
        model.sample("c", tg.Normal(mu=0.0, sigma=1.0))
        assert model.compile() is not compiled

    def test_compile_model_function(self):
        compiled = tg.compile_model(build_coupled())
        assert isinstance(compiled, tg.CompiledStep)
        assert compiled.sampled_varnames == ("a", "b", "z")
        assert compiled.function.__name__ == "coupled"

    def test_handle_construction(self):
        compiled = build_with_data().compile()
        initial = {"a": 1.0, "b": 10.0}
        sampler = compiled.build(initial, -1.0, 1.4)
        assert isinstance(sampler, tg.GibbsSampler)
        assert sampler.draw is compiled
        assert sampler.data == (-1.0, 1.4)
        assert sampler.initial_values is initial
        assert compiled.sampler(initial, -1.0, 1.4).data == sampler.data

    def test_debug_logging(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="tinygibbs.model.compiler"):
            build_coupled().compile()
        assert "Compiled model 'coupled'" in caplog.text


class TestModelBuilder:
    def test_from_statements(self):
        (x,) = tg.variables("x")
        model = tg.GibbsModel.from_statements(
            "structured",
            [
                tg.AssignStatement("shift", x + 1),
                tg.SampleStatement(
                    "a", tg.Normal(mu=tg.Variable("shift"), sigma=1.0)
                ),
            ],
            data=("x",),
        )
        assert model.sampled_varnames == ("a",)
        assert model.intermediate_varnames == ("shift",)
        sampler = model.build({"a": 0.0}, 2.0)
        expected = stats.norm.rvs(
            loc=3.0, scale=1.0, random_state=np.random.default_rng(4)
        )
        assert tg.step(np.random.default_rng(4), sampler)["a"] == expected

    def test_fluent_chaining(self):
        model = tg.GibbsModel("chained")
        (a,) = model.variables("a")
        returned = model.sample("a", tg.Normal(mu=0.0, sigma=1.0)).assign("z", a * 2)
        assert returned is model
        assert len(model) == 2
        assert "a" in model and "z" not in model

    def test_str(self):
        model = build_with_data()
        assert str(model).splitlines()[0] == "with_data(x, y):"
        assert str(model).splitlines()[1] == "    a ~ Normal(mu=(x + b), sigma=(y ** 2))"

    def test_rejects_other_statements(self):
        with pytest.raises((TypeError, TypeCheckError)):
            tg.GibbsModel("m").add_statement("a ~ Normal(0, 1)")

    def test_var(self):
        assert tg.GibbsModel("m").var("a").name == "a"


def test_vector_model_compiles():
    compiled = build_vector().compile()
    assert compiled.data_names == ("x",)
