"""
Background work for the rental lifecycle.

Runs follow-up steps that must not block an HTTP response, such as
retrying an equipment availability update after a partial failure.
"""

import logging
import threading
from typing import Callable, Optional

from rentalhub.database import get_db
from rentalhub.services.lifecycle_results import PendingEquipmentUpdate, TransitionResult

logger = logging.getLogger(__name__)


def run_in_background(
    task: Callable,
    *args,
    task_name: Optional[str] = None,
    on_success: Optional[Callable] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
    **kwargs
) -> threading.Thread:
    """
    Execute a task in a daemon thread.

    Args:
        task: The function to execute
        *args: Positional arguments to pass to the task
        task_name: Optional name for logging purposes
        on_success: Optional callback on successful completion (receives the result)
        on_error: Optional callback on error (receives exception)
        **kwargs: Keyword arguments to pass to the task

    Returns:
        The thread object (for testing/monitoring purposes)
    """
    name = task_name or task.__name__

    def wrapper():
        try:
            logger.debug(f"[BackgroundTask] Starting: {name}")
            result = task(*args, **kwargs)
            logger.debug(f"[BackgroundTask] Completed: {name}")

            if on_success:
                on_success(result)

        except Exception as e:
            logger.error(f"[BackgroundTask] Failed: {name} - {e}", exc_info=True)

            if on_error:
                try:
                    on_error(e)
                except Exception as callback_error:
                    logger.error(f"[BackgroundTask] Error callback failed: {callback_error}")

    thread = threading.Thread(target=wrapper, name=f"bg-{name}", daemon=True)
    thread.start()

    logger.debug(f"[BackgroundTask] Dispatched: {name}")
    return thread


def retry_pending_equipment_update(pending: PendingEquipmentUpdate) -> TransitionResult:
    """Retry the equipment step of a partial failure with its own session."""
    from rentalhub.services.rental_lifecycle_service import RentalLifecycleService

    with get_db() as db:
        result = RentalLifecycleService(db).retry_equipment_update(pending)
    if not result.ok:
        logger.error(
            "Equipment %s still out of step with rental %s after background retry (%s)",
            pending.equipment_id,
            pending.rental_id,
            result.outcome,
        )
    return result


def schedule_equipment_sync(
    pending: PendingEquipmentUpdate,
    task: Callable[[PendingEquipmentUpdate], TransitionResult] = retry_pending_equipment_update,
) -> threading.Thread:
    return run_in_background(task, pending, task_name=f"equipment-sync-{pending.equipment_id}")
