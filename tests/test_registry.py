"""Tests for the declared input registry."""

import pytest

from bookmarking import DeclaredInputs, InputRegistry


def test_declared_inputs_satisfy_protocol(pendulum_inputs):
    assert isinstance(pendulum_inputs, InputRegistry)


def test_user_changes_notify_listeners(pendulum_inputs):
    seen = []
    pendulum_inputs.add_listener(lambda input_id, value: seen.append((input_id, value)))

    assert pendulum_inputs.set_value("omega", 2) is True
    assert pendulum_inputs.set_value("omega", 2) is False

    assert seen == [("omega", 2)]


def test_equal_value_of_another_type_is_a_change(pendulum_inputs):
    assert pendulum_inputs.set_value("omega", 1.0) is True
    assert type(pendulum_inputs.get_value("omega")) is float


def test_seed_does_not_notify(pendulum_inputs):
    seen = []
    pendulum_inputs.add_listener(lambda input_id, value: seen.append(input_id))

    pendulum_inputs.seed("length", 100)

    assert pendulum_inputs.get_value("length") == 100
    assert seen == []


def test_removed_listener_is_not_called(pendulum_inputs):
    seen = []
    remove = pendulum_inputs.add_listener(lambda input_id, value: seen.append(input_id))
    remove()
    remove()

    pendulum_inputs.set_value("delta", 5)

    assert seen == []


def test_reset_restores_declared_defaults_silently(pendulum_inputs):
    seen = []
    pendulum_inputs.set_value("omega", 9)
    pendulum_inputs.seed("length", 100)
    pendulum_inputs.add_listener(lambda input_id, value: seen.append(input_id))

    pendulum_inputs.reset()

    assert pendulum_inputs.values() == pendulum_inputs.defaults
    assert seen == []


def test_defaults_are_isolated_from_caller():
    defaults = {"range": [1, 2]}
    inputs = DeclaredInputs(defaults)

    defaults["range"].append(3)
    inputs.values()["range"].append(4)
    inputs.seed("range", [7])
    inputs.reset()

    assert inputs.get_value("range") == [1, 2]


def test_unknown_ids_raise_key_error(pendulum_inputs):
    assert "gravity" not in pendulum_inputs
    with pytest.raises(KeyError):
        pendulum_inputs.get_value("gravity")
    with pytest.raises(KeyError):
        pendulum_inputs.seed("gravity", 9.81)
    with pytest.raises(KeyError):
        pendulum_inputs.set_value("gravity", 9.81)
