"""
Kanban drag-and-drop reconciler.

Two layers:

  preview_move / complete_move
      Pure functions over a task list. They never mutate their input; every
      changed task is a copy (dataclasses.replace).

  KanbanReconciler
      The gesture state machine (Idle -> Dragging -> Idle) holding the
      optimistic task list for one board.

  BoardSync
      Persistence boundary. Sends the status update and the destination
      column reorder through the API client; if either call fails the
      project's tasks are refetched and replace the optimistic state. If the
      refetch fails as well the board goes back to its pre-drag list.
"""
import logging
from enum import Enum
from dataclasses import dataclass, field, replace
from typing import List, Optional, Dict, Any, Tuple

from .errors import MissionControlError, NotFound
from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)

COLUMN_IDS = {s.value: s for s in TaskStatus}


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class InvalidTransition(MissionControlError):
    """A drag event arrived in a state that does not accept it."""
    pass


# (state, event) -> next state
TRANSITIONS = {
    (DragState.IDLE, "drag_start"): DragState.DRAGGING,
    (DragState.DRAGGING, "drag_over"): DragState.DRAGGING,
    (DragState.DRAGGING, "drag_end"): DragState.IDLE,
}


@dataclass
class PersistencePlan:
    """The two API calls that persist a completed drag."""
    task_id: str
    status: TaskStatus
    task_ids: List[str]

    def update_payload(self) -> Dict[str, Any]:
        return {"status": self.status.value, "recurring": self.status == TaskStatus.RECURRING}

    def reorder_payload(self) -> Dict[str, Any]:
        return {"reorder": True, "taskIds": list(self.task_ids), "status": self.status.value}


@dataclass
class DragResult:
    tasks: List[Task]
    plan: Optional[PersistencePlan] = None
    previous: List[Task] = field(default_factory=list)   # board before drag_start

    @property
    def abandoned(self) -> bool:
        return self.plan is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pure list operations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def find_task(tasks: List[Task], task_id: Optional[str]) -> Optional[Task]:
    return next((t for t in tasks if t.id == task_id), None)


def column_of(tasks: List[Task], target_id: Optional[str]) -> Optional[TaskStatus]:
    """Status a drop target stands for: a column id, or the status of a task id."""
    if target_id in COLUMN_IDS:
        return COLUMN_IDS[target_id]
    target = find_task(tasks, target_id)
    return target.status if target else None


def partition(tasks: List[Task], status: TaskStatus) -> List[Task]:
    """Tasks in one column, by order (list position breaks ties)."""
    indexed = [(t.order, i, t) for i, t in enumerate(tasks) if t.status == status]
    indexed.sort(key=lambda x: (x[0], x[1]))
    return [t for _, _, t in indexed]


def array_move(items: List[Any], old_index: int, new_index: int) -> List[Any]:
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def _apply_orders(tasks: List[Task], ordered: List[Task]) -> List[Task]:
    """Copy of tasks where each task in `ordered` gets its index as order."""
    positions = {t.id: i for i, t in enumerate(ordered)}
    result = []
    for task in tasks:
        if task.id in positions and task.order != positions[task.id]:
            task = replace(task, order=positions[task.id])
        result.append(task)
    return result


def _set_status(tasks: List[Task], task_id: str, status: TaskStatus, order: Optional[int] = None) -> List[Task]:
    result = []
    for task in tasks:
        if task.id == task_id:
            task = replace(task, status=status, order=task.order if order is None else order)
        result.append(task)
    return result


def preview_move(tasks: List[Task], active_id: str, target_id: Optional[str]) -> List[Task]:
    """
    Drag-over preview: move the dragged task into the hovered column (or the
    hovered task's column). Unchanged list when nothing would change.
    """
    active = find_task(tasks, active_id)
    status = column_of(tasks, target_id)
    if active is None or status is None or active.status == status:
        return tasks
    return _set_status(tasks, active_id, status)


def complete_move(
    tasks: List[Task], active_id: str, target_id: str, origin_status: TaskStatus
) -> Tuple[List[Task], PersistencePlan]:
    """
    Apply a drop.

    Dropping on a column puts the task in that column, appended at the end if
    it came from a different column. Dropping on a task puts the dragged task
    at the target's position in the target's column (array-move). The
    destination and origin columns come out densely numbered from 0.
    """
    status = column_of(tasks, target_id)
    if status is None:
        raise NotFound(f"Unknown drop target: {target_id}")

    active = find_task(tasks, active_id)
    if active is None:
        raise NotFound(f"Unknown task: {active_id}")

    if status != origin_status:
        # Enter the destination after every task already there
        others = [t for t in partition(tasks, status) if t.id != active_id]
        end = (max(t.order for t in others) + 1) if others else 0
        tasks = _set_status(tasks, active_id, status, order=end)
    elif active.status != status:
        # Preview moved it away; it is back in its own column
        tasks = _set_status(tasks, active_id, status)

    column = partition(tasks, status)
    if target_id not in COLUMN_IDS and target_id != active_id:
        old_index = next(i for i, t in enumerate(column) if t.id == active_id)
        new_index = next(i for i, t in enumerate(column) if t.id == target_id)
        column = array_move(column, old_index, new_index)

    tasks = _apply_orders(tasks, column)
    if origin_status != status:
        tasks = _apply_orders(tasks, partition(tasks, origin_status))

    plan = PersistencePlan(task_id=active_id, status=status, task_ids=[t.id for t in column])
    return tasks, plan


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gesture state machine
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class KanbanReconciler:
    """Optimistic task list for one board plus the active drag gesture."""

    def __init__(self, tasks: List[Task]):
        self.tasks = list(tasks)
        self.state = DragState.IDLE
        self.active_id: Optional[str] = None
        self.origin_status: Optional[TaskStatus] = None
        self._snapshot: List[Task] = []

    def _transition(self, event: str) -> None:
        next_state = TRANSITIONS.get((self.state, event))
        if next_state is None:
            raise InvalidTransition(f"{event} not allowed while {self.state.value}")
        self.state = next_state

    def drag_start(self, task_id: str) -> None:
        task = find_task(self.tasks, task_id)
        if task is None:
            raise NotFound(f"Unknown task: {task_id}")
        self._transition("drag_start")
        self.active_id = task_id
        self.origin_status = task.status
        self._snapshot = list(self.tasks)

    def drag_over(self, target_id: Optional[str]) -> List[Task]:
        self._transition("drag_over")
        self.tasks = preview_move(self.tasks, self.active_id, target_id)
        return self.tasks

    def drag_end(self, target_id: Optional[str] = None) -> DragResult:
        """
        Finish the gesture. No target (or a target that is neither a column
        nor a task on this board) abandons it: the list from before
        drag_start is restored and nothing is persisted.
        """
        self._transition("drag_end")
        active_id, origin = self.active_id, self.origin_status
        self.active_id = None
        self.origin_status = None

        if target_id is None or column_of(self.tasks, target_id) is None:
            self.tasks = self._snapshot
            logger.debug(f"Drag of {active_id} abandoned")
            return DragResult(tasks=self.tasks)

        self.tasks, plan = complete_move(self.tasks, active_id, target_id, origin)
        return DragResult(tasks=self.tasks, plan=plan, previous=self._snapshot)

    def reset(self, tasks: List[Task]) -> None:
        """Replace the optimistic list with server truth."""
        self.tasks = list(tasks)

    def column(self, status: TaskStatus) -> List[Task]:
        return partition(self.tasks, status)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Persistence
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class SyncOutcome:
    ok: bool
    tasks: List[Task]
    error: Optional[str] = None


class BoardSync:
    """Persists drag results through a MissionControlClient."""

    def __init__(self, client, project_id: str):
        self.client = client
        self.project_id = project_id

    def persist(self, result: DragResult) -> SyncOutcome:
        if result.plan is None:
            return SyncOutcome(ok=True, tasks=result.tasks)

        plan = result.plan
        try:
            self.client.update_task(self.project_id, plan.task_id, plan.update_payload())
            self.client.reorder_tasks(self.project_id, plan.task_ids, plan.status.value)
        except MissionControlError as e:
            logger.warning(f"Board sync failed for {self.project_id}, refetching: {e}")
            return SyncOutcome(ok=False, tasks=self._refetch(result), error=str(e))
        return SyncOutcome(ok=True, tasks=result.tasks)

    def _refetch(self, result: DragResult) -> List[Task]:
        """Server truth, or the board as it was before the drag if that fails too."""
        try:
            return self.client.list_tasks(self.project_id)
        except MissionControlError as e:
            logger.error(f"Refetch of {self.project_id} failed, restoring pre-drag board: {e}")
            return list(result.previous or result.tasks)

    def apply(self, reconciler: KanbanReconciler, result: DragResult) -> SyncOutcome:
        """persist() and, on failure, reset the reconciler to the refetched list."""
        outcome = self.persist(result)
        if not outcome.ok:
            reconciler.reset(outcome.tasks)
        return outcome
