#!/usr/bin/env python3
"""Tests for background task dispatch"""

import os
import sys
sys.path.append('.')

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")


def _pending():
    from rentalhub.models.equipment import EquipmentAvailability
    from rentalhub.models.rental import RentalStatus
    from rentalhub.services.lifecycle_results import PendingEquipmentUpdate

    return PendingEquipmentUpdate(
        rental_id="rental-1",
        equipment_id="equipment-1",
        rental_status=RentalStatus.CONFIRMED,
        target_availability=EquipmentAvailability.RENTED,
        error="RuntimeError: equipment table unreachable",
    )


def test_run_in_background_executes_task():
    """Test that run_in_background actually executes the task"""
    from rentalhub.services.background_tasks import run_in_background

    result_container = {"executed": False}

    def test_task():
        result_container["executed"] = True

    thread = run_in_background(test_task, task_name="test_task")
    thread.join(timeout=2.0)

    assert result_container["executed"] == True, "Task should have executed"
    assert thread.daemon
    print("[PASS] run_in_background executes task test passed")


def test_run_in_background_with_args():
    """Test that run_in_background passes arguments correctly"""
    from rentalhub.services.background_tasks import run_in_background

    result_container = {}

    def test_task_with_args(value1, value2, keyword_arg=None):
        result_container["values"] = (value1, value2, keyword_arg)

    thread = run_in_background(
        test_task_with_args,
        "arg1",
        "arg2",
        keyword_arg="kwarg",
        task_name="arg_task"
    )
    thread.join(timeout=2.0)

    assert result_container["values"] == ("arg1", "arg2", "kwarg")
    print("[PASS] run_in_background with args test passed")


def test_run_in_background_callbacks():
    """Test that on_success and on_error callbacks are called"""
    from rentalhub.services.background_tasks import run_in_background

    result_container = {}

    def successful_task():
        return "success"

    def failing_task():
        raise ValueError("Test error")

    thread = run_in_background(
        successful_task,
        on_success=lambda result: result_container.update(result=result),
    )
    thread.join(timeout=2.0)

    thread = run_in_background(
        failing_task,
        on_error=lambda error: result_container.update(error=str(error)),
    )
    thread.join(timeout=2.0)

    assert result_container["result"] == "success"
    assert "Test error" in result_container["error"]
    print("[PASS] run_in_background callbacks test passed")


def test_schedule_equipment_sync_dispatches_pending_update():
    """Test that a partial failure is handed to the background task"""
    from rentalhub.services.background_tasks import schedule_equipment_sync

    received = []

    thread = schedule_equipment_sync(_pending(), task=received.append)
    thread.join(timeout=2.0)

    assert received == [_pending()]
    assert thread.name == "bg-equipment-sync-equipment-1"
    print("[PASS] schedule_equipment_sync test passed")


def test_pending_update_round_trips_through_dict():
    """Test that a pending update survives serialization for a later retry"""
    from rentalhub.services.lifecycle_results import PendingEquipmentUpdate

    pending = _pending()
    data = pending.to_dict()

    assert data["rental_status"] == "confirmed"
    assert data["target_availability"] == "rented"
    assert PendingEquipmentUpdate.from_dict(data) == pending
    print("[PASS] pending update serialization test passed")


if __name__ == "__main__":
    print("Running background task tests...")
    print()

    test_run_in_background_executes_task()
    test_run_in_background_with_args()
    test_run_in_background_callbacks()
    test_schedule_equipment_sync_dispatches_pending_update()
    test_pending_update_round_trips_through_dict()

    print()
    print("[SUCCESS] All background task tests passed!")
