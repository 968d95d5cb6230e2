"""Action queue ordering and pacing tests."""

import pytest

from fleetbattle.engine.actions import Action, ActionQueue, ActionStep


def _recording_action(log: list[str], label: str, delay: float = 0.0) -> Action:
    return Action(
        kind="test",
        steps=[
            ActionStep("first", lambda: log.append(f"{label}:first"), delay=delay),
            ActionStep("second", lambda: log.append(f"{label}:second")),
        ],
        on_complete=lambda: log.append(f"{label}:done"),
    )


def test_actions_run_to_completion_in_order() -> None:
    log: list[str] = []
    queue = ActionQueue(sleep=lambda _: None)
    queue.enqueue(_recording_action(log, "a"))
    queue.enqueue(_recording_action(log, "b"))

    assert log == ["a:first", "a:second", "a:done", "b:first", "b:second", "b:done"]
    assert queue.completed == 2
    assert queue.pending == 0
    assert not queue.in_flight


def test_reentrant_enqueue_waits_for_current_action() -> None:
    log: list[str] = []
    queue = ActionQueue(sleep=lambda _: None)

    def schedule_follow_up() -> None:
        log.append("outer:first")
        queue.enqueue(_recording_action(log, "inner"))
        log.append("outer:after-enqueue")

    queue.enqueue(
        Action(
            kind="outer",
            steps=[ActionStep("first", schedule_follow_up), ActionStep("second", lambda: log.append("outer:second"))],
            on_complete=lambda: log.append("outer:done"),
        )
    )

    assert log == [
        "outer:first",
        "outer:after-enqueue",
        "outer:second",
        "outer:done",
        "inner:first",
        "inner:second",
        "inner:done",
    ]


def test_delays_are_scaled_by_speed_factor() -> None:
    sleeps: list[float] = []
    queue = ActionQueue(sleep=sleeps.append, speed_factor=2.0)
    queue.enqueue(_recording_action([], "a", delay=0.5))
    assert sleeps == [0.25]


def test_zero_delay_never_sleeps() -> None:
    sleeps: list[float] = []
    queue = ActionQueue(sleep=sleeps.append)
    queue.enqueue(_recording_action([], "a"))
    assert sleeps == []


def test_failed_step_drops_pending_actions_and_reraises() -> None:
    log: list[str] = []
    queue = ActionQueue(sleep=lambda _: None)

    def explode() -> None:
        queue.enqueue(_recording_action(log, "never"))
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        queue.enqueue(Action(kind="broken", steps=[ActionStep("explode", explode)]))

    assert log == []
    assert queue.pending == 0
    assert not queue.in_flight

    queue.enqueue(_recording_action(log, "later"))
    assert log[-1] == "later:done"


def test_speed_factor_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ActionQueue(speed_factor=0)
