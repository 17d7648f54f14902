import time
import uuid

from conftest import watcher_threads

from code_pipeline import AbortReason, ExecutionContext, LocalCache, Slot
from code_pipeline.context import CancellationWatcher


def test_background_context_never_stops() -> None:
    ctx = ExecutionContext.background()

    assert ctx.reason() is None
    assert ctx.remaining() is None
    assert ctx.wait(0.05) is False


def test_zero_timeout_is_already_exceeded() -> None:
    ctx = ExecutionContext.background().with_timeout(0)

    assert ctx.done() is True
    assert ctx.reason() is AbortReason.DEADLINE_EXCEEDED


def test_negative_timeout_is_clamped() -> None:
    ctx = ExecutionContext.background().with_timeout(-5)

    assert ctx.remaining() == 0.0
    assert ctx.reason() is AbortReason.DEADLINE_EXCEEDED


def test_deadline_expires() -> None:
    ctx = ExecutionContext.background().with_timeout(0.1)

    assert ctx.wait(5) is True
    assert ctx.reason() is AbortReason.DEADLINE_EXCEEDED


def test_first_reason_wins() -> None:
    ctx = ExecutionContext.background().with_timeout(0.05)
    ctx.wait(5)

    ctx.cancel()

    assert ctx.reason() is AbortReason.DEADLINE_EXCEEDED


def test_cancel_after_unobserved_deadline_keeps_the_deadline() -> None:
    ctx = ExecutionContext.background().with_timeout(0.05)
    time.sleep(0.1)

    ctx.cancel()

    assert ctx.reason() is AbortReason.DEADLINE_EXCEEDED


def test_cancel_after_parent_deadline_keeps_the_deadline() -> None:
    parent = ExecutionContext.background().with_timeout(0.05)
    child = parent.with_cancel()
    time.sleep(0.1)

    child.cancel()

    assert child.reason() is AbortReason.DEADLINE_EXCEEDED


def test_child_inherits_parent_cancellation() -> None:
    parent = ExecutionContext.background().with_cancel()
    child = parent.with_timeout(60)

    parent.cancel()

    assert child.reason() is AbortReason.CANCELED


def test_child_cancel_does_not_stop_parent() -> None:
    parent = ExecutionContext.background()
    child = parent.with_cancel()

    child.cancel()

    assert child.reason() is AbortReason.CANCELED
    assert parent.reason() is None


def test_child_deadline_never_exceeds_parent() -> None:
    parent = ExecutionContext.background().with_timeout(1)
    child = parent.with_timeout(60)

    remaining = child.remaining()
    assert remaining is not None
    assert remaining <= 1


def test_watcher_cancels_on_flag() -> None:
    cache = LocalCache()
    root = ExecutionContext.background()
    pipeline_id = uuid.uuid4()
    run_ctx = root.with_timeout(10)

    with CancellationWatcher(run_ctx, cache, pipeline_id, interval=0.02, cache_ctx=root):
        cache.set_value(root, pipeline_id, Slot.CANCELED, True)
        assert run_ctx.wait(5) is True

    assert run_ctx.reason() is AbortReason.CANCELED
    assert watcher_threads() == []


def test_watcher_ignores_false_flag() -> None:
    cache = LocalCache()
    root = ExecutionContext.background()
    pipeline_id = uuid.uuid4()
    cache.set_value(root, pipeline_id, Slot.CANCELED, False)
    run_ctx = root.with_cancel()

    with CancellationWatcher(run_ctx, cache, pipeline_id, interval=0.02, cache_ctx=root):
        time.sleep(0.1)

    assert run_ctx.reason() is None
    assert watcher_threads() == []
