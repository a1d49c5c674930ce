"""Tests for node evaluation: requirements, actions, triggers, schedulers."""

from __future__ import annotations

import logging
import threading

import pytest

from tripline.engine.runtime import (
    ExecutionContext,
    ImmediateScheduler,
    ThreadingScheduler,
    coerce_outcome,
)
from tripline.models.result import Result
from tripline.storage.memory import InMemoryExecutionStore
from tripline.target import Target
from tests.samples import Block, Player, PlayerTarget


def _one(compiler, *lines):
    return compiler.compile_lines(list(lines), namespace="test")[0]


@pytest.fixture
def anything() -> Target[object]:
    return Target(object())


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------

class TestRequirementNode:
    def test_success_and_failure(self, compiler, context, steve, alex):
        requirement = _one(compiler, "?level 5")
        assert requirement.test(PlayerTarget(steve), context).is_success
        result = requirement.test(PlayerTarget(alex), context)
        assert result.is_failure
        assert result.messages == ("alex is below level 5",)

    def test_type_mismatch_is_empty(self, compiler, context):
        requirement = _one(compiler, "?level 5")
        assert requirement.test(Target(Block("stone")), context).is_empty

    def test_negated(self, compiler, context, alex):
        requirement = _one(compiler, "?level[negated=true] 5")
        assert requirement.test(PlayerTarget(alex), context).is_success

    def test_negated_mismatch_stays_empty(self, compiler, context):
        requirement = _one(compiler, "?level(not=true) 5")
        assert requirement.test(Target(Block("stone")), context).is_empty

    def test_exception_becomes_failure(self, compiler, context, anything, caplog):
        requirement = _one(compiler, "?boom")
        with caplog.at_level(logging.ERROR):
            result = requirement.test(anything, context)
        assert result == Result.failure("RuntimeError: kaput")
        assert "Requirement 'boom' raised RuntimeError: kaput" in caplog.text

    def test_none_counts_as_failure(self, provider, compiler, context, anything):
        provider.requirement("silent")(lambda target, call: None)
        assert _one(compiler, "?silent").test(anything, context).is_failure

    def test_unsupported_return_value(self, provider, compiler, context, anything):
        provider.requirement("chatty")(lambda target, call: "yes")
        result = _one(compiler, "?chatty").test(anything, context)
        assert result.is_failure
        assert result.messages == ("TypeError: expected Result, bool or None, got str",)

    def test_negated_exception_stays_failure(self, compiler, context, anything):
        action = _one(compiler, "?boom(negated=true)", "!log x")
        result = action.execute(anything, context).result()
        assert result.is_failure
        assert result.messages == ("RuntimeError: kaput",)
        assert "log" not in context.data
        assert action.last_execution(anything, context) is None

    def test_negated_unsupported_return_stays_failure(
        self, provider, compiler, context, anything
    ):
        provider.requirement("chatty")(lambda target, call: "yes")
        result = _one(compiler, "?chatty[negated=true]").test(anything, context)
        assert result.is_failure
        assert result.messages == ("TypeError: expected Result, bool or None, got str",)

    def test_negated_none_passes(self, provider, compiler, context, anything):
        provider.requirement("silent")(lambda target, call: None)
        assert _one(compiler, "?silent(negated=true)").test(anything, context).is_success

    def test_reads_context_data(self, compiler, context, anything):
        requirement = _one(compiler, "?flag ready")
        assert requirement.test(anything, context).is_failure
        context.data["ready"] = True
        assert requirement.test(anything, context).is_success

    def test_default_context(self, compiler, anything):
        assert _one(compiler, "?always").test(anything).is_success


class TestCoerceOutcome:
    def test_bool(self):
        assert coerce_outcome(True, none_means=Result.failure()).is_success
        assert coerce_outcome(False, none_means=Result.success()).is_failure

    def test_none(self):
        assert coerce_outcome(None, none_means=Result.empty()).is_empty

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            coerce_outcome(1, none_means=Result.success())


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class TestActionExecution:
    def test_runs_body(self, compiler, context, steve):
        action = _one(compiler, "!greet hello")
        result = action.execute(PlayerTarget(steve), context).result()
        assert result.is_success
        assert steve.inbox == ["hello"]

    def test_type_mismatch_is_empty_without_side_effects(self, compiler, context):
        action = _one(compiler, "!greet hello")
        target = Target(Block("stone"))
        assert action.execute(target, context).result().is_empty
        assert action.last_execution(target, context) is None

    def test_guard_failure_skips_body(self, compiler, context, alex):
        action = _one(compiler, "?level 5", "!greet hi")
        target = PlayerTarget(alex)
        result = action.execute(target, context).result()
        assert result.is_failure
        assert result.messages == ("alex is below level 5",)
        assert alex.inbox == []
        assert action.last_execution(target, context) is None

    def test_guards_short_circuit(self, compiler, context, anything):
        action = _one(compiler, "?never", "?boom", "!log x")
        result = action.execute(anything, context).result()
        assert result.messages == ("never passes",)

    def test_body_exception_becomes_failure(self, compiler, context, anything):
        result = _one(compiler, "!explode").execute(anything, context).result()
        assert result == Result.failure("ValueError: nope")

    def test_failed_body_records_nothing(self, compiler, context, anything):
        action = _one(compiler, "!fail(once=true)")
        assert action.execute(anything, context).result().messages == ("failed on purpose",)
        assert action.last_execution(anything, context) is None
        assert action.execute(anything, context).result().messages == ("failed on purpose",)

    def test_records_timestamp(self, compiler, context, clock, anything):
        clock.now = 1234
        action = _one(compiler, "!log x")
        action.execute(anything, context).result()
        assert action.last_execution(anything, context) == 1234


class TestCooldown:
    def test_cooldown_window(self, compiler, context, clock, anything):
        action = _one(compiler, "!log(cooldown=5s) x")
        assert action.execute(anything, context).result().is_success

        clock.now = 3000
        result = action.execute(anything, context).result()
        assert result.is_failure
        assert result.messages == ("still on cooldown, 2s remaining",)

        clock.now = 6000
        assert action.execute(anything, context).result().is_success
        assert context.data["log"] == ["x", "x"]

    def test_cooldown_is_per_target(self, compiler, context, steve, alex):
        action = _one(compiler, "!greet(cooldown=1h) hi")
        assert action.execute(PlayerTarget(steve), context).result().is_success
        assert action.execute(PlayerTarget(alex), context).result().is_success
        assert action.execute(PlayerTarget(steve), context).result().is_failure

    def test_target_identity_comes_from_unique_id(self, compiler, context, steve):
        action = _one(compiler, "!greet(cooldown=1h) hi")
        action.execute(PlayerTarget(steve), context).result()
        twin = Player("steve-again", uuid=steve.uuid)
        assert action.execute(PlayerTarget(twin), context).result().is_failure


class TestExecuteOnce:
    def test_only_first_execution_succeeds(self, compiler, context, clock, anything):
        action = _one(compiler, "!log(once=true) x")
        assert action.execute(anything, context).result().is_success
        for _ in range(3):
            clock.advance(10 * 24 * 60 * 60 * 1000)
            result = action.execute(anything, context).result()
            assert result == Result.failure("already executed once")
        assert context.data["log"] == ["x"]

    def test_once_is_per_target(self, compiler, context, steve, alex):
        action = _one(compiler, "!greet(execute_once=true) hi")
        assert action.execute(PlayerTarget(steve), context).result().is_success
        assert action.execute(PlayerTarget(alex), context).result().is_success

    def test_concurrent_executions_succeed_once(self, compiler, anything):
        context = ExecutionContext(store=InMemoryExecutionStore())
        action = _one(compiler, "!log(once=true) x")
        barrier = threading.Barrier(16)
        outcomes: list[Result] = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            result = action.execute(anything, context).result(timeout=5)
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(r.is_success for r in outcomes) == 1
        assert sum(r.is_failure for r in outcomes) == 15
        assert context.data["log"] == ["x"]


class TestNestedActions:
    def test_children_run_in_order(self, compiler, context, anything):
        action = _one(compiler, "!log a", "!log b", "!log c")
        assert action.execute(anything, context).result().is_success
        assert context.data["log"] == ["a", "b", "c"]

    def test_children_skip_when_parent_fails(self, compiler, context, anything):
        action = _one(compiler, "!fail", "!log b")
        assert action.execute(anything, context).result().is_failure
        assert "log" not in context.data

    def test_child_failure_keeps_parent_timestamp(self, compiler, context, clock, anything):
        clock.now = 1000
        action = _one(compiler, "!log(cooldown=10s) a", "!fail")
        result = action.execute(anything, context).result()
        assert result.is_failure
        assert result.messages == ("failed on purpose",)
        assert action.last_execution(anything, context) == 1000
        assert action.execute(anything, context).result().messages == (
            "still on cooldown, 10s remaining",
        )


class TestDelayedActions:
    def test_without_scheduler_runs_inline(self, compiler, context, anything):
        future = _one(compiler, "!log(delay=2s) later").execute(anything, context)
        assert future.done
        assert context.data["log"] == ["later"]

    def test_scheduled_body_completes_future(self, compiler, context, scheduler, anything):
        context.scheduler = scheduler
        future = _one(compiler, "!log(delay=2s) later").execute(anything, context)
        assert not future.done
        assert "log" not in context.data
        assert scheduler.queue[0][0] == 2000

        assert scheduler.run_all() == 1
        assert future.result().is_success
        assert context.data["log"] == ["later"]

    def test_deferred_exception_becomes_failure(self, compiler, context, scheduler, anything):
        context.scheduler = scheduler
        future = _one(compiler, "!explode(delay=1s)").execute(anything, context)
        scheduler.run_all()
        assert future.result() == Result.failure("ValueError: nope")

    def test_slot_is_reserved_while_pending(self, compiler, context, scheduler, anything):
        context.scheduler = scheduler
        action = _one(compiler, "!log(delay=1s, once=true) x")
        first = action.execute(anything, context)
        second = action.execute(anything, context)
        assert second.result() == Result.failure("already executed once")
        scheduler.run_all()
        assert first.result().is_success
        assert context.data["log"] == ["x"]

    def test_failed_deferred_body_releases_slot(self, compiler, context, scheduler, anything):
        context.scheduler = scheduler
        action = _one(compiler, "!fail(delay=1s, once=true)")
        future = action.execute(anything, context)
        scheduler.run_all()
        assert future.result().is_failure
        assert action.last_execution(anything, context) is None

    def test_deferred_body_records_run_time(self, compiler, context, clock, scheduler, anything):
        context.scheduler = scheduler
        action = _one(compiler, "!log(delay=1s) x")
        action.execute(anything, context)
        clock.now = 1000
        scheduler.run_all()
        assert action.last_execution(anything, context) == 1000

    def test_nested_children_wait_for_deferred_parent(
        self, compiler, context, scheduler, anything
    ):
        context.scheduler = scheduler
        future = _one(compiler, "!log(delay=1s) a", "!log b").execute(anything, context)
        assert "log" not in context.data
        scheduler.run_all()
        assert future.result().is_success
        assert context.data["log"] == ["a", "b"]

    def test_immediate_scheduler(self, compiler, context, anything):
        context.scheduler = ImmediateScheduler()
        future = _one(compiler, "!log(delay=1h) x").execute(anything, context)
        assert future.result().is_success

    def test_threading_scheduler(self, compiler, anything):
        scheduler = ThreadingScheduler()
        context = ExecutionContext(scheduler=scheduler)
        future = _one(compiler, "!log(delay=20ms) x").execute(anything, context)
        assert future.result(timeout=5).is_success
        scheduler.join(timeout=5)
        assert scheduler.pending == 0
        assert context.data["log"] == ["x"]


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

class TestTriggerNode:
    def test_fire_runs_actions_in_order(self, compiler, context, anything):
        trigger = _one(compiler, "@tick", "!log a", "?always", "!log b")
        assert trigger.fire(anything, context).result().is_success
        assert context.data["log"] == ["a", "b"]

    def test_guard_failure_skips_actions(self, compiler, context, anything):
        trigger = _one(compiler, "?never", "@tick", "!log a")
        result = trigger.fire(anything, context).result()
        assert result == Result.failure("never passes")
        assert "log" not in context.data

    def test_type_mismatch_is_empty(self, compiler, context):
        trigger = _one(compiler, "@player.join", "!log a")
        assert trigger.fire(Target(Block("dirt")), context).result().is_empty

    def test_action_failure_fails_the_fire(self, compiler, context, anything):
        trigger = _one(compiler, "@tick", "!log a", "?always", "!fail")
        result = trigger.fire(anything, context).result()
        assert result.is_failure
        assert context.data["log"] == ["a"]

    def test_trigger_without_actions_reports_guards(self, compiler, context, anything):
        trigger = _one(compiler, "?always", "@tick")
        assert trigger.fire(anything, context).result().is_success

    def test_trigger_cooldown(self, compiler, context, clock, anything):
        trigger = _one(compiler, "@tick(cooldown=1m)", "!log a")
        assert trigger.fire(anything, context).result().is_success
        result = trigger.fire(anything, context).result()
        assert result == Result.failure("still on cooldown, 1m remaining")
        clock.advance(60_000)
        assert trigger.fire(anything, context).result().is_success
        assert context.data["log"] == ["a", "a"]

    def test_execute_actions_off(self, compiler, context, anything):
        trigger = _one(compiler, "?always", "@tick", "!log a")
        result = trigger.fire(anything, context, execute_actions=False).result()
        assert result.is_success
        assert "log" not in context.data

    def test_on_fire_called_before_actions(self, compiler, context, anything):
        trigger = _one(compiler, "@tick", "!log a")
        seen = []

        def on_fire(node, target):
            seen.append((node.identifier, target, list(context.data.get("log", []))))

        trigger.fire(anything, context, on_fire=on_fire).result()
        assert seen == [("tick", anything, [])]

    def test_on_fire_exception_is_logged(self, compiler, context, anything, caplog):
        trigger = _one(compiler, "@tick", "!log a")

        def broken(node, target):
            raise RuntimeError("listener broke")

        with caplog.at_level(logging.ERROR):
            result = trigger.fire(anything, context, on_fire=broken).result()
        assert result.is_success
        assert "Listener of trigger 'tick' raised" in caplog.text
        assert context.data["log"] == ["a"]

    def test_stacked_triggers_share_action_bookkeeping(self, compiler, context, anything):
        tick, _ = compiler.compile_lines(["@tick", "@break", "!log(once=true) a"])
        assert tick.fire(anything, context).result().is_success
        assert tick.actions[0].execute(anything, context).result().is_failure
