"""
Weekly scheduled-task storage (scheduled/tasks.json).

A scheduled task is a (dayOfWeek, HH:MM) slot that repeats every week. It is
not a kanban card and has nothing to do with the kanban `recurring` column.
"""
import re
from pathlib import Path
from typing import List, Dict, Any

from .errors import NotFound, ValidationError
from .schema import ScheduledTask, DAYS_OF_WEEK, PROJECT_COLORS
from .storage import read_json, write_json
from .utils import generate_id, utc_now

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_time(value: Any) -> str:
    if not isinstance(value, str) or not TIME_RE.match(value):
        raise ValidationError(f"time must be HH:MM, got: {value!r}")
    return value


def _validate_day(value: Any) -> str:
    day = str(value or "").strip().lower()
    if day not in DAYS_OF_WEEK:
        raise ValidationError(f"dayOfWeek must be one of: {', '.join(DAYS_OF_WEEK)}")
    return day


class ScheduledStore:
    def __init__(self, data_dir: str):
        self.tasks_file = Path(data_dir) / "scheduled" / "tasks.json"

    def list_tasks(self) -> List[ScheduledTask]:
        raw = read_json(self.tasks_file) or []
        return [ScheduledTask.from_dict(t) for t in raw]

    def _save_all(self, tasks: List[ScheduledTask]) -> None:
        write_json(self.tasks_file, [t.to_dict() for t in tasks])

    def create(self, data: Dict[str, Any]) -> ScheduledTask:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required")

        tasks = self.list_tasks()
        now = utc_now()
        task = ScheduledTask(
            id=generate_id(),
            title=title,
            description=data.get("description") or "",
            time=_validate_time(data.get("time")),
            day_of_week=_validate_day(data.get("dayOfWeek")),
            color=data.get("color") or PROJECT_COLORS[len(tasks) % len(PROJECT_COLORS)],
            assigned_member_id=data.get("assignedMemberId") or None,
            created_at=now,
            updated_at=now,
        )
        tasks.append(task)
        self._save_all(tasks)
        return task

    def update(self, task_id: str, updates: Dict[str, Any]) -> ScheduledTask:
        tasks = self.list_tasks()
        task = next((t for t in tasks if t.id == task_id), None)
        if not task:
            raise NotFound("Scheduled task not found")

        if "title" in updates:
            title = (updates.get("title") or "").strip()
            if not title:
                raise ValidationError("title cannot be empty")
            task.title = title
        if "description" in updates:
            task.description = updates.get("description") or ""
        if "time" in updates:
            task.time = _validate_time(updates.get("time"))
        if "dayOfWeek" in updates:
            task.day_of_week = _validate_day(updates.get("dayOfWeek"))
        if updates.get("color"):
            task.color = updates["color"]
        if "assignedMemberId" in updates:
            task.assigned_member_id = updates.get("assignedMemberId") or None

        task.updated_at = utc_now()
        self._save_all(tasks)
        return task

    def delete(self, task_id: str) -> ScheduledTask:
        tasks = self.list_tasks()
        task = next((t for t in tasks if t.id == task_id), None)
        if not task:
            raise NotFound("Scheduled task not found")
        self._save_all([t for t in tasks if t.id != task_id])
        return task
