"""
Tests for the capability Registry.

The registry is the contract between loaded units and the dispatch loop:
ids are unique, unknown ids produce error envelopes, and failures inside a
capability never escape ``invoke``.
"""

import json
import threading
import time

import pytest
from clarabot.errors import DuplicateCapabilityError, LoadError
from clarabot.models import InvocationResult
from clarabot.plugins import AddNumbers
from clarabot.registry import Registry
from conftest import StaticCapability, plugin_source


@pytest.fixture
def registry(context):
    return Registry(context)


class TestRegister:
    def test_register_initializes_with_context(self, registry, context):
        capability = StaticCapability("a")
        registry.register(capability)
        assert registry.is_loaded("a")
        assert capability.init_count == 1
        assert capability.context is context

    def test_is_loaded_false_for_unknown(self, registry):
        assert registry.is_loaded("nothing") is False

    def test_init_failure_is_load_error(self, registry):
        class Failing(StaticCapability):
            def init(self, context):
                raise RuntimeError("store unavailable")

        with pytest.raises(LoadError, match="error initializing plugin bad"):
            registry.register(Failing("bad"))
        assert not registry.is_loaded("bad")

    def test_schema_name_must_match_id(self, registry):
        class Mismatched(StaticCapability):
            def function_schema(self):
                return {"name": "other", "parameters": {"type": "object"}}

        with pytest.raises(LoadError, match="does not match"):
            registry.register(Mismatched("mine"))

    def test_malformed_schema(self, registry):
        class NoName(StaticCapability):
            def function_schema(self):
                return {"description": "no name"}

        with pytest.raises(LoadError, match="invalid function schema"):
            registry.register(NoName("x"))


class TestDuplicatePolicy:
    """Both policies are deterministic and reflected by is_loaded and invoke."""

    def test_reject_keeps_first(self, context):
        registry = Registry(context, duplicate_policy="reject")
        first = StaticCapability("dup", result="first")
        second = StaticCapability("dup", result="second")
        registry.register(first)

        with pytest.raises(DuplicateCapabilityError):
            registry.register(second)

        assert registry.is_loaded("dup")
        assert registry.invoke("dup", "{}").result == "first"
        assert second.init_count == 0
        assert len(registry.list_function_schemas()) == 1

    def test_duplicate_is_a_load_error(self):
        assert issubclass(DuplicateCapabilityError, LoadError)

    def test_overwrite_keeps_last(self, context):
        registry = Registry(context, duplicate_policy="overwrite")
        registry.register(StaticCapability("dup", result="first"))
        registry.register(StaticCapability("dup", result="second"))

        assert registry.is_loaded("dup")
        assert registry.invoke("dup", "{}").result == "second"
        assert registry.ids() == ["dup"]
        assert len(registry.list_function_schemas()) == 1


class TestLoadAll:
    def test_loads_every_unit(self, registry, compiled_dir, write_unit):
        write_unit(compiled_dir, "one.py", plugin_source("one"))
        write_unit(compiled_dir, "two.py", plugin_source("two"))

        assert sorted(registry.load_all(compiled_dir)) == ["one", "two"]
        assert registry.is_loaded("one") and registry.is_loaded("two")

    def test_missing_directory_loads_nothing(self, registry, temp_dir):
        assert registry.load_all(temp_dir / "absent") == []

    def test_fail_fast_aborts(self, context, compiled_dir, write_unit):
        registry = Registry(context, load_policy="fail-fast")
        write_unit(compiled_dir, "a_broken.py", "def broken(:\n")
        write_unit(compiled_dir, "b_good.py", plugin_source("good"))

        with pytest.raises(LoadError) as exc_info:
            registry.load_all(compiled_dir)
        assert exc_info.value.path.endswith("a_broken.py")
        assert not registry.is_loaded("good")

    def test_skip_policy_continues(self, context, compiled_dir, write_unit):
        registry = Registry(context, load_policy="skip")
        write_unit(compiled_dir, "a_broken.py", "def broken(:\n")
        write_unit(compiled_dir, "b_good.py", plugin_source("good"))

        assert registry.load_all(compiled_dir) == ["good"]

    def test_duplicate_unit_on_disk_aborts_under_reject(self, context, compiled_dir, write_unit):
        registry = Registry(context)
        write_unit(compiled_dir, "a.py", plugin_source("same"))
        write_unit(compiled_dir, "b.py", plugin_source("same"))

        with pytest.raises(DuplicateCapabilityError):
            registry.load_all(compiled_dir)
        assert registry.is_loaded("same")


class TestInvoke:
    def test_unknown_capability_envelope(self, registry):
        envelope = registry.invoke("foo", "{}")
        assert isinstance(envelope, InvocationResult)
        assert envelope.to_json() == '{"error": "plugin with ID foo not found"}'

    def test_success_envelope(self, registry):
        registry.register(AddNumbers())
        envelope = registry.invoke("add", '{"num1": 2, "num2": 3}')
        assert envelope.error is None
        assert json.loads(envelope.result) == {"result": 5}

    def test_execute_exception_becomes_error(self, registry):
        registry.register(AddNumbers())
        envelope = registry.invoke("add", '{"num1": "two", "num2": 3}')
        assert envelope.result is None
        assert envelope.error == "num1 is not a number"

    def test_malformed_arguments_become_error(self, registry):
        registry.register(AddNumbers())
        envelope = registry.invoke("add", '{"num1": 2,')
        assert envelope.is_error

    def test_non_string_result_is_serialized(self, registry):
        registry.register(StaticCapability("data", result={"key": [1, 2]}))
        assert registry.invoke("data", "{}").result == '{"key": [1, 2]}'

    def test_arguments_passed_verbatim(self, registry):
        capability = StaticCapability("s")
        registry.register(capability)
        registry.invoke("s", '{"x": 1}')
        assert capability.calls == ['{"x": 1}']

    def test_timeout_becomes_error(self, context):
        class Slow(StaticCapability):
            def execute(self, arguments):
                time.sleep(1.0)
                return "late"

        registry = Registry(context, invoke_timeout=0.05)
        registry.register(Slow("slow"))
        try:
            envelope = registry.invoke("slow", "{}")
        finally:
            registry.close()
        assert envelope.is_error
        assert "timed out" in envelope.error

    def test_capability_timeout_overrides_registry(self, context):
        class Patient(StaticCapability):
            invoke_timeout = 5.0

            def execute(self, arguments):
                time.sleep(0.2)
                return "done"

        registry = Registry(context, invoke_timeout=0.05)
        registry.register(Patient("patient"))
        try:
            envelope = registry.invoke("patient", "{}")
        finally:
            registry.close()
        assert envelope.result == "done"
        assert registry.timeout_for(StaticCapability()) == 0.05

    def test_timeout_cancels_capability(self, context):
        released = threading.Event()

        class Cancellable(StaticCapability):
            invoke_timeout = 0.05
            cancelled = False

            def execute(self, arguments):
                released.wait(2.0)
                return "late"

            def cancel(self):
                self.cancelled = True
                released.set()

        capability = Cancellable("cancellable")
        registry = Registry(context)
        registry.register(capability)
        try:
            envelope = registry.invoke("cancellable", "{}")
        finally:
            registry.close()
        assert envelope.error == "plugin cancellable timed out after 0.05s"
        assert capability.cancelled


class TestFunctionSchemas:
    def test_one_schema_per_capability(self, registry):
        registry.register(StaticCapability("a"))
        registry.register(AddNumbers())
        names = {schema["name"] for schema in registry.list_function_schemas()}
        assert names == {"a", "add"}

    def test_schema_shape(self, registry):
        registry.register(AddNumbers())
        (schema,) = registry.list_function_schemas()
        assert set(schema) == {"name", "description", "parameters"}
        assert schema["parameters"]["required"] == ["num1", "num2"]
