from datetime import date, datetime

from sqlalchemy.exc import OperationalError

from cockpit.db.models import FocusBlock, Task
from cockpit.services.reconcile import (
    BlockRef,
    block_duration_minutes,
    heal_task_link,
    reconcile_block_delete,
    reconcile_block_update,
)

from conftest import reload


def test_update_moves_task_to_block_day_and_length(session, make_task, make_block):
    task = make_task(do_date=date(2024, 1, 1), duration_minutes=30)
    block = make_block(
        task_id=task.id,
        start_time=datetime(2024, 1, 4, 14, 0),
        end_time=datetime(2024, 1, 4, 15, 30),
    )

    result = reconcile_block_update(session, block)

    assert result.task_sync_error is None
    task = reload(session, Task, task.id)
    assert task.do_date == date(2024, 1, 4)
    assert task.duration_minutes == 90
    assert task.scheduled_block_id == block.id


def test_short_block_is_floored_to_fifteen_minutes(session, make_task, make_block):
    task = make_task()
    block = make_block(
        task_id=task.id,
        start_time=datetime(2024, 1, 1, 9, 0),
        end_time=datetime(2024, 1, 1, 9, 5),
    )

    reconcile_block_update(session, block)

    assert reload(session, Task, task.id).duration_minutes == 15


def test_duration_rounds_to_nearest_minute():
    block = FocusBlock(
        tenant_id="t", user_id="u", title="b", context="work",
        start_time=datetime(2024, 1, 1, 9, 0, 0),
        end_time=datetime(2024, 1, 1, 9, 44, 40),
    )
    assert block_duration_minutes(block) == 45


def test_unlinked_block_is_a_no_op(session, make_block):
    block = make_block(start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10))
    assert reconcile_block_update(session, block).task_sync_error is None


def test_missing_task_is_reported_not_raised(session, make_block):
    block = make_block(task_id=999, start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10))
    result = reconcile_block_update(session, block)
    assert "999" in result.task_sync_error


def test_task_write_failure_keeps_block_and_warns(session, make_task, make_block, monkeypatch):
    task = make_task(do_date=date(2024, 1, 1))
    block = make_block(task_id=task.id, start_time=datetime(2024, 1, 8, 9), end_time=datetime(2024, 1, 8, 10))

    def failing_commit():
        raise OperationalError("UPDATE task", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)
    result = reconcile_block_update(session, block)
    monkeypatch.undo()

    assert "database is locked" in result.task_sync_error
    assert reload(session, FocusBlock, block.id).start_time == datetime(2024, 1, 8, 9)
    assert reload(session, Task, task.id).do_date == date(2024, 1, 1)


def test_delete_clears_the_task_link(session, make_task, make_block):
    task = make_task()
    block = make_block(task_id=task.id, start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10))
    reconcile_block_update(session, block)

    ref = BlockRef.of(block)
    session.delete(block)
    session.commit()
    reconcile_block_delete(session, ref)

    assert reload(session, Task, task.id).scheduled_block_id is None


def test_delete_leaves_a_newer_link_alone(session, make_task, make_block):
    task = make_task(scheduled_block_id=77)
    block = make_block(task_id=task.id, start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10))

    reconcile_block_delete(session, BlockRef.of(block))

    assert reload(session, Task, task.id).scheduled_block_id == 77


def test_delete_unlink_failure_is_swallowed_after_logging(session, make_task, make_block, monkeypatch, caplog):
    task = make_task()
    block = make_block(task_id=task.id, start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10))
    reconcile_block_update(session, block)
    ref = BlockRef.of(block)

    def failing_commit():
        raise OperationalError("UPDATE task", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)
    reconcile_block_delete(session, ref)
    monkeypatch.undo()

    assert "scheduled_block_id" in caplog.text


def test_heal_clears_dangling_reference(session, make_task):
    task = make_task(scheduled_block_id=404)
    healed = heal_task_link(session, task)
    assert healed.scheduled_block_id is None


def test_heal_resyncs_live_link_and_is_idempotent(session, make_task, make_block):
    task = make_task(do_date=date(2024, 1, 1))
    block = make_block(task_id=task.id, start_time=datetime(2024, 1, 9, 9), end_time=datetime(2024, 1, 9, 11))
    task.scheduled_block_id = block.id
    session.add(task)
    session.commit()

    first = heal_task_link(session, task)
    assert (first.do_date, first.duration_minutes) == (date(2024, 1, 9), 120)
    second = heal_task_link(session, first)
    assert (second.do_date, second.duration_minutes, second.scheduled_block_id) == (date(2024, 1, 9), 120, block.id)
