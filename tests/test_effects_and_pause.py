"""Tests for store-driven rebuilds, effect reconciliation and pause/resume."""

from typing import List

import pytest

from motif import TransitionStatus, Workflow, step
from motif.workflows.effects import EffectDef, process_effects


@pytest.fixture
def effect_calls():
    return {"runs": [], "cleanups": []}


@pytest.fixture
def counter_step(counter_store, effect_calls):
    """A counter step with one effect keyed on its count."""

    @step("Counter", output_schema=int, create_store=counter_store)
    def Counter(ctx):
        count = ctx.store["count"]

        def on_count():
            effect_calls["runs"].append(count)
            return lambda: effect_calls["cleanups"].append(count)

        ctx.effect(on_count, [count])
        return {"count": count, "inc": ctx.store["inc"], "done": lambda: ctx.next(count)}

    return Counter


@pytest.mark.unit
class TestProcessEffects:
    """Test suite for positional effect reconciliation."""

    def test_first_pass_runs_everything(self):
        runs: List[str] = []
        records = process_effects(
            [EffectDef(run=lambda: runs.append("a")), EffectDef(run=lambda: runs.append("b"), deps=[])]
        )

        assert runs == ["a", "b"]
        assert len(records) == 2

    def test_empty_deps_never_rerun(self):
        runs: List[str] = []
        definition = EffectDef(run=lambda: runs.append("once"), deps=[])

        records = process_effects([definition])
        records = process_effects([definition], records)

        assert runs == ["once"]

    def test_omitted_deps_always_rerun(self):
        runs: List[str] = []
        cleanups: List[str] = []

        def effect():
            runs.append("run")
            return lambda: cleanups.append("cleanup")

        records = process_effects([EffectDef(run=effect)])
        process_effects([EffectDef(run=effect)], records)

        assert runs == ["run", "run"]
        assert cleanups == ["cleanup"]

    def test_changed_deps_clean_up_then_rerun(self):
        events: List[str] = []

        def effect_for(value):
            def effect():
                events.append(f"run {value}")
                return lambda: events.append(f"cleanup {value}")

            return effect

        records = process_effects([EffectDef(run=effect_for(1), deps=[1])])
        records = process_effects([EffectDef(run=effect_for(1), deps=[1])], records)
        process_effects([EffectDef(run=effect_for(2), deps=[2])], records)

        assert events == ["run 1", "cleanup 1", "run 2"]

    def test_removed_positions_are_cleaned_up(self):
        cleanups: List[str] = []
        records = process_effects(
            [
                EffectDef(run=lambda: None, deps=[]),
                EffectDef(run=lambda: (lambda: cleanups.append("second")), deps=[]),
            ]
        )

        remaining = process_effects([EffectDef(run=lambda: None, deps=[])], records)

        assert cleanups == ["second"]
        assert len(remaining) == 1

    def test_failing_cleanup_is_logged(self, log_messages):
        def broken():
            raise RuntimeError("cleanup exploded")

        records = process_effects([EffectDef(run=lambda: broken)])
        process_effects([EffectDef(run=lambda: None)], records)

        assert any("cleanup exploded" in m for m in log_messages)


@pytest.mark.unit
class TestStoreRebuilds:
    """Test suite for rebuilds triggered by store changes."""

    def test_store_change_rebuilds_current_step(self, counter_step, effect_calls):
        wf = Workflow([counter_step])
        counter = counter_step("c")
        wf.register(counter).start(counter)

        wf.get_current_step().state["inc"]()
        wf.get_current_step().state["inc"]()

        assert wf.get_current_step().state["count"] == 2
        assert effect_calls["runs"] == [0, 1, 2]
        assert effect_calls["cleanups"] == [0, 1]

    def test_rebuild_does_not_rerun_enter_hooks(self, counter_store):
        events: List[str] = []

        @step("Hooked", create_store=counter_store)
        def Hooked(ctx):
            ctx.transition_in(lambda: events.append("in"))
            ctx.transition_out(lambda: events.append(f"out {ctx.store['count']}"))
            return {"inc": ctx.store["inc"]}

        wf = Workflow([Hooked])
        hooked = Hooked("h")
        wf.register(hooked).start(hooked)

        wf.get_current_step().state["inc"]()
        wf.get_current_step().state["inc"]()
        wf.stop()
        wf.start(hooked)

        assert events.count("in") == 2
        # stop() pauses first, so exit hooks are skipped
        assert not any(e.startswith("out") for e in events)

    def test_latest_exit_hooks_run_on_exit(self, counter_store):
        events: List[str] = []

        @step("Hooked", output_schema=int, create_store=counter_store)
        def Hooked(ctx):
            ctx.transition_out(lambda: events.append(f"out {ctx.store['count']}"))
            return {"inc": ctx.store["inc"], "done": lambda: ctx.next(ctx.store["count"])}

        @step("End")
        def End(ctx):
            return {}

        wf = Workflow([Hooked, End])
        hooked, end = Hooked("h"), End()
        wf.register([hooked, end]).connect(hooked, end)
        wf.start(hooked)

        wf.get_current_step().state["inc"]()
        wf.get_current_step().state["done"]()

        assert events == ["out 1"]

    def test_store_change_inside_hook_rebuilds_after_entry(self, counter_store):
        builds: List[int] = []

        @step("Eager", create_store=counter_store)
        def Eager(ctx):
            builds.append(ctx.store["count"])
            ctx.transition_in(ctx.store["inc"])
            return {"count": ctx.store["count"]}

        wf = Workflow([Eager])
        eager = Eager("e")
        wf.register(eager).start(eager)

        assert builds == [0, 1]
        assert wf.get_current_step().state["count"] == 1
        assert wf.get_current_step().status == TransitionStatus.READY

    def test_store_unsubscribed_after_exit(self, counter_step):
        @step("End")
        def End(ctx):
            return {}

        wf = Workflow([counter_step, End])
        counter, end = counter_step("c"), End()
        wf.register([counter, end]).connect(counter, end)
        wf.start(counter)
        assert counter.store.listener_count == 1

        wf.get_current_step().state["done"]()

        assert counter.store.listener_count == 0


@pytest.mark.unit
class TestPauseResume:
    """Test suite for pausing and resuming the lifecycle."""

    def test_pause_freezes_and_resume_rebuilds(self, counter_step, effect_calls):
        wf = Workflow([counter_step])
        counter = counter_step("c")
        wf.register(counter).start(counter)
        assert effect_calls["runs"] == [0]

        wf.pause()
        assert effect_calls["cleanups"] == [0]
        assert counter.store.listener_count == 0

        wf.get_current_step().state["inc"]()
        assert effect_calls["runs"] == [0]

        wf.resume()
        assert effect_calls["runs"] == [0, 1]
        assert wf.get_current_step().state["count"] == 1

        wf.get_current_step().state["inc"]()
        assert effect_calls["runs"] == [0, 1, 2]

    def test_next_is_ignored_while_paused(self, counter_step):
        @step("End")
        def End(ctx):
            return {}

        wf = Workflow([counter_step, End])
        counter, end = counter_step("c"), End()
        wf.register([counter, end]).connect(counter, end)
        wf.start(counter)

        wf.pause()
        wf.get_current_step().state["done"]()

        assert wf.get_current_step().instance is counter
        assert wf.internal.history == []

    def test_pause_and_resume_are_idempotent(self, counter_step, effect_calls, log_messages):
        wf = Workflow([counter_step])
        counter = counter_step("c")
        wf.register(counter).start(counter)

        wf.pause()
        wf.pause()
        wf.resume()
        wf.resume()

        assert effect_calls["runs"] == [0, 0]
        assert sum("Workflow paused" in m for m in log_messages) == 1
        assert sum("Workflow resumed" in m for m in log_messages) == 1

    def test_rebuild_while_paused_discards_registrations(self, counter_step, effect_calls):
        wf = Workflow([counter_step])
        counter = counter_step("c")
        wf.register(counter).start(counter)
        wf.pause()

        wf.rebuild_current()

        context = wf.internal.get_context()
        assert context.effects == []
        assert context.out_hooks == []
        assert effect_calls["runs"] == [0]

    def test_entering_while_paused_defers_enter_hooks(self):
        events: List[str] = []

        @step("Lazy")
        def Lazy(ctx):
            ctx.transition_in(lambda: events.append("in"))
            ctx.effect(lambda: events.append("effect"), [])
            return {}

        wf = Workflow([Lazy])
        lazy = Lazy("l")
        wf.register(lazy)
        wf.internal.set_running(False)
        wf.internal.transition_into(lazy, None, False, [])

        assert wf.get_current_step().status == TransitionStatus.READY
        assert events == []

        wf.resume()

        assert events == ["in", "effect"]

        wf.pause()
        wf.resume()
        assert events == ["in", "effect", "effect"]
