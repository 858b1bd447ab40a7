"""Tests for the expression evaluator."""

import pytest

from homectl.core.action import (
    ActivateSceneAction,
    CustomAction,
    ForceTriggerRoutineAction,
    SetDeviceStateAction,
)
from homectl.core.device import CustomState, Device, LightState, devices_by_key
from homectl.exceptions import ConversionError, DiffEncodingError, EvaluationError
from homectl.modules.expr import EvaluatorConfig, ExpressionEvaluator, parse_expression


@pytest.fixture
def evaluator(bus):
    return ExpressionEvaluator(bus)


@pytest.fixture
def run(evaluator, devices, scenes, groups):
    """Evaluate an expression against the shared snapshot."""

    def _run(source):
        return evaluator.evaluate(source, devices, scenes, groups)

    return _run


class TestBuiltins:
    """Tests for explicit built-in calls."""

    def test_activate_scene(self, run, dispatched):
        """Test activate_scene dispatches an unscoped scene activation."""
        result = run('activate_scene("evening")')

        assert dispatched == [ActivateSceneAction(scene_id="evening")]
        assert result.actions == dispatched
        assert dispatched[0].device_keys is None
        assert dispatched[0].group_keys is None

    def test_custom_action_joins_payload(self, run, dispatched):
        """Test payload parts are concatenated without separator."""
        run('custom_action("ikea", ("a", "b", "c"))')

        assert dispatched == [CustomAction(integration_id="ikea", payload="abc")]

    def test_custom_action_rejects_non_string_parts(self, run, dispatched):
        """Test a non-string payload member is an evaluation error."""
        with pytest.raises(EvaluationError):
            run('custom_action("ikea", ("a", 1))')

        assert dispatched == []

    def test_trigger_routine(self, run, dispatched):
        """Test trigger_routine dispatches a forced routine trigger."""
        run('trigger_routine("wake_up")')

        assert dispatched == [ForceTriggerRoutineAction(routine_id="wake_up")]

    def test_builtins_dispatch_in_call_order(self, run, dispatched):
        """Test explicit commands keep their call order."""
        run('trigger_routine("r1"); activate_scene("s1"); custom_action("x", ("p",))')

        assert [type(a) for a in dispatched] == [
            ForceTriggerRoutineAction,
            ActivateSceneAction,
            CustomAction,
        ]

    def test_wrong_argument_type(self, run, dispatched):
        """Test a built-in called with a non-string fails the evaluation."""
        with pytest.raises(EvaluationError):
            run("activate_scene(42)")

        assert dispatched == []


class TestShortCircuit:
    """Tests for false results suppressing side effects."""

    def test_false_result_dispatches_nothing(self, run, dispatched):
        """Test activate_scene followed by a false result dispatches nothing."""
        result = run('activate_scene("x"); False')

        assert dispatched == []
        assert result.suppressed is True
        assert result.actions == []

    def test_false_result_skips_assignments(self, run, dispatched):
        """Test assignments are not reconciled when the result is false."""
        run("devices.hue.lamp1.state.on = True; False")

        assert dispatched == []

    def test_falsy_non_boolean_does_not_suppress(self, run, dispatched):
        """Test only boolean false suppresses (0 does not)."""
        result = run('activate_scene("x"); 0')

        assert result.suppressed is False
        assert len(dispatched) == 1

    def test_conditional_scene(self, run, dispatched):
        """Test the usual guard pattern: act only when a sensor reads true."""
        run('activate_scene("evening") if devices.zigbee.hall_motion.state.value else False')
        assert dispatched == []


class TestGroupScoping:
    """Tests for the group_keys variable."""

    def test_group_keys_scope_scene_activation(self, run, dispatched):
        """Test group_keys is attached to explicit scene activations."""
        run('group_keys = ("kitchen", "hall"); activate_scene("relax")')

        assert dispatched == [
            ActivateSceneAction(
                scene_id="relax",
                device_keys=None,
                group_keys=frozenset({"kitchen", "hall"}),
            )
        ]

    def test_group_keys_read_at_evaluation_end(self, run, dispatched):
        """Test group_keys assigned after the call still applies."""
        run('activate_scene("relax"); group_keys = ("kitchen",)')

        assert dispatched[0].group_keys == frozenset({"kitchen"})

    def test_group_keys_must_be_tuple_of_strings(self, run, dispatched):
        """Test a malformed group_keys fails the evaluation."""
        with pytest.raises(EvaluationError):
            run('group_keys = "kitchen"; activate_scene("relax")')

        assert dispatched == []


class TestAssignments:
    """Tests for assignment-derived actions."""

    def test_state_assignment(self, run, dispatched, lamp1):
        """Test assigning a state leaf writes the device state."""
        result = run("devices.hue.lamp1.state.on = True")

        assert result.changed == {"devices.hue.lamp1.state.on": True}
        assert len(dispatched) == 1
        action = dispatched[0]
        assert isinstance(action, SetDeviceStateAction)
        assert action.device.key == lamp1.key
        # The changed subtree is a full state replacement
        assert action.device.state == LightState(on=True)

    def test_diff_ignores_unrelated_variables(self, run):
        """Test only the changed path appears in the diff."""
        result = run(
            "devices.hue.lamp1.state.on = True; "
            "devices.hue.living_room_lamp.state.on = True"
        )

        assert result.changed == {"devices.hue.lamp1.state.on": True}

    def test_scene_assignment(self, run, dispatched, lamp1):
        """Test assigning a scene leaf activates the scene for that device."""
        run('devices.hue.lamp1.scene = "evening"')

        assert dispatched == [
            ActivateSceneAction(scene_id="evening", device_keys=(lamp1.key,), group_keys=None)
        ]

    def test_normalized_name(self, run, dispatched, living_room_lamp):
        """Test multi-word device names are addressable in lower snake case."""
        run("devices.hue.living_room_lamp.state.brightness = 0.2")

        assert dispatched == []  # state without "on" doesn't fit a light

        run("devices.hue.living_room_lamp.state.on = False")
        assert dispatched[0].device.key == living_room_lamp.key

    def test_unknown_device_is_skipped(self, run, dispatched):
        """Test assigning into a device that doesn't exist is not an error."""
        result = run("devices.hue.ghost.state.on = True")

        assert dispatched == []
        assert result.changed == {"devices.hue.ghost.state.on": True}

    def test_shape_mismatch_is_skipped(self, run, dispatched):
        """Test a state that fails validation is dropped silently."""
        run("devices.hue.lamp1.state.on = True; devices.hue.lamp1.state.brightness = 5")

        assert dispatched == []

    def test_explicit_then_scenes_then_states(self, run, dispatched):
        """Test dispatch order: built-ins, then scene diffs, then state diffs."""
        run(
            "devices.hue.lamp1.state.on = True; "
            'devices.hue.living_room_lamp.scene = "evening"; '
            'trigger_routine("r1")'
        )

        assert [type(a) for a in dispatched] == [
            ForceTriggerRoutineAction,
            ActivateSceneAction,
            SetDeviceStateAction,
        ]

    def test_unchanged_value_produces_nothing(self, run, dispatched):
        """Test assigning the current value is not a change."""
        result = run("devices.hue.lamp1.state.on = False")

        assert result.changed == {}
        assert dispatched == []


class TestFailures:
    """Tests for failure handling."""

    def test_diff_encoding_failure_dispatches_nothing(self, run, dispatched):
        """Test a diff that can't be encoded aborts without partial dispatch."""
        with pytest.raises(DiffEncodingError):
            run('activate_scene("a"); devices.x = 1; devices.x.y = 2')

        assert dispatched == []

    def test_non_finite_number_fails(self, run, dispatched):
        """Test a state value that can't leave the namespace fails the call."""
        with pytest.raises(ConversionError):
            run("devices.hue.lamp1.state.brightness = 1e308 * 10")

        assert dispatched == []

    def test_unknown_variable(self, run):
        """Test reading an unknown variable fails."""
        with pytest.raises(EvaluationError):
            run("devices.hue.nothing.state.on")

    def test_syntax_error(self, run):
        """Test invalid syntax fails."""
        with pytest.raises(EvaluationError):
            run("devices.hue.lamp1.state.on = ")

    def test_subscriber_failure_does_not_propagate(self, bus, run, dispatched):
        """Test dispatch is fire-and-forget."""

        def broken(event):
            raise RuntimeError("integration offline")

        bus.subscribe(broken)
        result = run('activate_scene("evening")')

        assert len(result.actions) == 1
        assert len(dispatched) == 1


class TestConfig:
    """Tests for evaluator configuration."""

    def test_cache_reused_for_identical_snapshots(self, evaluator, run):
        """Test the namespace is built once for repeated snapshots."""
        run("True")
        run("True")

        assert evaluator.cache.misses == 1
        assert evaluator.cache.hits == 1

    def test_cache_keeps_bool_and_number_apart(self, evaluator, scenes, groups):
        """Test a leaf changing from 0 to False is seen as False."""

        def evaluate(level):
            meter = Device(
                id="m", name="Meter", integration_id="acme", state=CustomState(level=level)
            )
            return evaluator.evaluate(
                "devices.acme.meter.state.level", devices_by_key([meter]), scenes, groups
            )

        first = evaluate(0)
        second = evaluate(False)

        assert first.result == 0.0
        assert first.suppressed is False
        assert second.result is False
        assert second.suppressed is True

    def test_cached_namespace_not_mutated_by_evaluation(self, run, dispatched):
        """Test an assignment doesn't leak into the next evaluation."""
        run("devices.hue.lamp1.state.on = True")
        result = run("devices.hue.lamp1.state.on")

        assert result.result is False

    def test_cache_disabled(self, bus, devices, scenes, groups):
        """Test cache_namespace=False always rebuilds."""
        evaluator = ExpressionEvaluator(bus, EvaluatorConfig(cache_namespace=False))
        evaluator.evaluate("True", devices, scenes, groups)
        evaluator.evaluate("True", devices, scenes, groups)

        assert evaluator.cache.misses == 0

    def test_relaxed_types_allow_kind_change(self, run):
        """Test a variable can change kind under the default config."""
        result = run('devices.hue.lamp1.state.on = "yes"; devices.hue.lamp1.state.on')
        assert result.result == "yes"

    def test_strict_types(self, bus, devices, scenes, groups):
        """Test relaxed_types=False rejects kind changes."""
        evaluator = ExpressionEvaluator(bus, EvaluatorConfig(relaxed_types=False))

        with pytest.raises(EvaluationError):
            evaluator.evaluate('devices.hue.lamp1.state.on = "yes"', devices, scenes, groups)

    def test_parsed_expression_accepted(self, run, dispatched):
        """Test an already-parsed expression can be evaluated."""
        run(parse_expression('activate_scene("evening")'))
        assert len(dispatched) == 1

    def test_debug_sink(self, bus, devices, scenes, groups):
        """Test dbg() output goes to the configured sink."""
        lines = []
        evaluator = ExpressionEvaluator(bus, debug_sink=lines.append)

        result = evaluator.evaluate("dbg(devices.hue.lamp1.state.on)", devices, scenes, groups)

        assert lines == ["false"]
        assert result.result is None
