from collections import defaultdict

import pytest

from adstudio.models.domain import JobPhase, JobTask
from adstudio.simulator.progress import (
    COMPLETE_PROGRESS,
    PROCESSING_PROGRESS,
    QUEUED_PROGRESS,
    ProgressSimulator,
    Tick,
    TickKind,
    advance,
)


def _recording_simulator(scheduler, rng):
    history = defaultdict(list)
    simulator = ProgressSimulator(
        scheduler=scheduler,
        rng=rng,
        observer=lambda task: history[task.id].append((task.phase, task.progress, task.url)),
    )
    return simulator, history


def test_advance_moves_one_phase_per_tick():
    task = JobTask(id="a", phase=JobPhase.QUEUED, progress=QUEUED_PROGRESS)

    started = advance(task, Tick(TickKind.START))
    assert started.phase == JobPhase.PROCESSING
    assert started.progress == PROCESSING_PROGRESS

    assert advance(started, Tick(TickKind.START)) is started
    assert advance(task, Tick(TickKind.STEP, increment=10)) is task
    assert advance(task, Tick(TickKind.PROMOTE)) is task

    nearly = started.model_copy(update={"progress": 95})
    done = advance(nearly, Tick(TickKind.STEP, increment=15))
    assert done.phase == JobPhase.DONE
    assert done.progress == COMPLETE_PROGRESS

    assert advance(done, Tick(TickKind.PROMOTE)) is done
    promoted = advance(done.model_copy(update={"url": "https://cdn/x.mp4"}), Tick(TickKind.PROMOTE))
    assert promoted.phase == JobPhase.DOWNLOADABLE


def test_tasks_progress_in_order_until_downloadable(scheduler, rng):
    simulator, history = _recording_simulator(scheduler, rng)
    epoch = simulator.start_batch(["a", "b", "c"])
    assert all(task.phase == JobPhase.QUEUED and task.progress == QUEUED_PROGRESS for task in simulator.tasks())

    assert simulator.complete_batch(epoch, ["u1", "u2", "u3"])
    scheduler.run_until_idle()

    for task in simulator.tasks():
        assert task.phase == JobPhase.DOWNLOADABLE
        assert task.progress == COMPLETE_PROGRESS
        assert task.url

    for events in history.values():
        ranks = [phase.rank for phase, _, _ in events]
        assert ranks[0] == JobPhase.QUEUED.rank
        assert all(0 <= b - a <= 1 for a, b in zip(ranks, ranks[1:]))
        assert sorted(set(ranks)) == [0, 1, 2, 3]
        progress = [value for _, value, _ in events]
        assert progress == sorted(progress)
        for phase, value, url in events:
            if phase in (JobPhase.DONE, JobPhase.DOWNLOADABLE):
                assert value == COMPLETE_PROGRESS
            if phase == JobPhase.DOWNLOADABLE:
                assert url


def test_finished_tasks_wait_in_done_until_urls_arrive(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    epoch = simulator.start_batch(["a", "b", "c"])
    scheduler.run_until_idle()

    assert [task.phase for task in simulator.tasks()] == [JobPhase.DONE] * 3
    assert scheduler.pending == 0

    simulator.complete_batch(epoch, ["u1", "u2", "u3"])
    assert [task.url for task in simulator.tasks()] == ["u1", "u2", "u3"]
    assert [task.phase for task in simulator.tasks()] == [JobPhase.DOWNLOADABLE] * 3


def test_tasks_progress_independently(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    simulator.start_batch(["a", "b", "c"])
    scheduler.advance(simulator.start_delay_ms + simulator.tick_max_ms * 2)

    progress = {task.id: task.progress for task in simulator.tasks()}
    assert all(value > PROCESSING_PROGRESS for value in progress.values())


def test_reset_turns_pending_ticks_into_noops(scheduler, rng):
    simulator, history = _recording_simulator(scheduler, rng)
    simulator.start_batch(["a", "b"])
    scheduler.advance(simulator.start_delay_ms + 1)
    before = {key: list(value) for key, value in history.items()}

    simulator.reset()
    scheduler.run_until_idle()

    assert simulator.tasks() == []
    assert dict(history) == before


def test_reset_is_idempotent(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    simulator.start_batch(["a"])
    simulator.reset()
    simulator.reset()
    assert simulator.tasks() == []
    scheduler.run_until_idle()
    assert simulator.tasks() == []


def test_new_batch_ignores_ticks_from_previous_batch(scheduler, rng):
    simulator, history = _recording_simulator(scheduler, rng)
    old_epoch = simulator.start_batch(["old"])
    simulator.start_batch(["new"])
    scheduler.run_until_idle()

    assert [task.id for task in simulator.tasks()] == ["new"]
    assert len(history["old"]) == 1
    assert simulator.complete_batch(old_epoch, ["stale"]) is False
    assert simulator.get("new").url is None


def test_halt_freezes_the_batch(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    epoch = simulator.start_batch(["a", "b", "c"])
    scheduler.advance(simulator.start_delay_ms + simulator.tick_max_ms)
    snapshot = simulator.tasks()

    simulator.halt(epoch)
    scheduler.run_until_idle()

    assert simulator.tasks() == snapshot
    assert all(task.phase == JobPhase.PROCESSING for task in snapshot)
    assert simulator.complete_batch(epoch, ["u1", "u2", "u3"]) is False


def test_complete_batch_rejects_wrong_url_count(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    epoch = simulator.start_batch(["a", "b", "c"])
    with pytest.raises(ValueError):
        simulator.complete_batch(epoch, ["only-one"])


def test_duplicate_task_ids_are_rejected(scheduler, rng):
    simulator, _ = _recording_simulator(scheduler, rng)
    with pytest.raises(ValueError):
        simulator.start_batch(["a", "a"])
