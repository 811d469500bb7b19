"""Unit tests for step definitions, instances and stores."""

import pytest
from pydantic import BaseModel

from motif import SchemaValidationError, StepDefinition, step
from motif.store import Store, create_store


class Profile(BaseModel):
    name: str
    age: int


@pytest.mark.unit
class TestStepDefinition:
    """Test suite for StepDefinition and StepInstance."""

    def test_identity_with_and_without_name(self):
        """Named instances get ``kind:name`` ids, unnamed ones the bare kind."""

        @step("Greeting")
        def Greeting(ctx):
            return {}

        assert Greeting("hello").id == "Greeting:hello"
        assert Greeting().id == "Greeting"
        assert Greeting(name="x").name == "x"

    def test_instances_are_distinct_nodes(self):
        """Two instances of one kind and name are still separate objects."""
        Greeting = StepDefinition("Greeting", lambda ctx: {})
        first, second = Greeting("a"), Greeting("a")

        assert first is not second
        assert first.id == second.id
        assert first.definition is Greeting

    def test_config_is_validated_and_coerced(self):
        """Config passes through the config schema on construction."""
        Configured = StepDefinition("Configured", lambda ctx: {}, config_schema=Profile)

        instance = Configured("p", {"name": "ada", "age": "36"})

        assert isinstance(instance.config, Profile)
        assert instance.config.age == 36

    def test_config_may_be_the_first_argument(self):
        """A non-string first argument is treated as config."""
        Configured = StepDefinition("Configured", lambda ctx: {}, config_schema=Profile)

        instance = Configured({"name": "ada", "age": 36})

        assert instance.name == ""
        assert instance.config.name == "ada"

    def test_invalid_config_raises_schema_error(self):
        """Config that does not match its schema fails at construction."""
        Configured = StepDefinition("Configured", lambda ctx: {}, config_schema=Profile)

        with pytest.raises(SchemaValidationError) as exc_info:
            Configured("p", {"name": "ada"})

        assert exc_info.value.errors
        assert "config of 'Configured'" in str(exc_info.value)

    def test_config_ignored_without_schema(self):
        """Steps without a config schema carry no config."""
        Plain = StepDefinition("Plain", lambda ctx: {})

        assert Plain("p", {"anything": 1}).config is None

    def test_each_instance_owns_its_store(self, counter_store):
        """Stores are materialized per instance, never shared."""
        Counter = StepDefinition("Counter", lambda ctx: {}, create_store=counter_store)
        first, second = Counter("one"), Counter("two")

        first.store.get_state()["inc"]()

        assert first.store.get_state()["count"] == 1
        assert second.store.get_state()["count"] == 0

    def test_empty_kind_rejected(self):
        """A step needs a kind."""
        with pytest.raises(ValueError):
            StepDefinition("", lambda ctx: {})

    def test_schemas_validate_values(self):
        """Input and output schemas validate and coerce."""
        Typed = StepDefinition("Typed", lambda ctx: {}, input_schema=int, output_schema=Profile)

        assert Typed.input_schema.validate("7") == 7
        with pytest.raises(SchemaValidationError):
            Typed.output_schema.validate({"name": "ada"})


@pytest.mark.unit
class TestStore:
    """Test suite for the observable Store."""

    def test_set_state_merges_and_notifies(self, counter_store):
        store = Store(counter_store)
        seen = []
        store.subscribe(lambda state, previous: seen.append((previous["count"], state["count"])))

        store.set_state({"count": 5})
        store.get_state()["inc"]()

        assert seen == [(0, 5), (5, 6)]
        assert callable(store.get_state()["inc"])

    def test_unchanged_state_does_not_notify(self, counter_store):
        store = Store(counter_store)
        seen = []
        store.subscribe(lambda state, previous: seen.append(state))

        store.set_state({"count": 0})

        assert seen == []

    def test_unsubscribe_stops_notifications(self, counter_store):
        store = Store(counter_store)
        seen = []
        unsubscribe = store.subscribe(lambda state, previous: seen.append(state))

        unsubscribe()
        unsubscribe()
        store.set_state({"count": 1})

        assert seen == []
        assert store.listener_count == 0

    def test_replace_drops_missing_keys(self, counter_store):
        store = Store(counter_store)

        store.set_state({"count": 3}, replace=True)

        assert store.get_state() == {"count": 3}

    def test_data_strips_actions(self, counter_store):
        store = Store(counter_store)

        assert store.data() == {"count": 0}

    def test_create_store_without_creator(self):
        assert create_store(None) is None
