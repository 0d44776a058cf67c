"""
Crew member storage backend (members/members.json, a flat JSON array).

Also aggregates a member's activity across kanban boards and the weekly
schedule.
"""
import logging
from pathlib import Path
from typing import List, Optional, Dict, Any, Iterable

from .errors import NotFound, ValidationError
from .schema import Member, MEMBER_COLORS, TaskStatus
from .storage import read_json, write_json
from .utils import generate_id

logger = logging.getLogger(__name__)

TEXT_FIELDS = {
    "role": "role",
    "description": "description",
    "llmModel": "llm_model",
    "soulMd": "soul_md",
    "memoryMd": "memory_md",
}


class MemberStore:
    """Flat-file store for crew members."""

    def __init__(self, data_dir: str):
        self.members_file = Path(data_dir) / "members" / "members.json"

    def list_members(self) -> List[Member]:
        raw = read_json(self.members_file) or []
        return [Member.from_dict(m) for m in raw]

    def _save_all(self, members: List[Member]) -> None:
        write_json(self.members_file, [m.to_dict() for m in members])

    def get(self, member_id: str) -> Optional[Member]:
        return next((m for m in self.list_members() if m.id == member_id), None)

    def require(self, member_id: str) -> Member:
        member = self.get(member_id)
        if not member:
            raise NotFound("Member not found")
        return member

    def create(self, data: Dict[str, Any]) -> Member:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")

        members = self.list_members()
        member = Member(
            id=generate_id(),
            name=name,
            color=data.get("color") or MEMBER_COLORS[len(members) % len(MEMBER_COLORS)],
        )
        for key, attr in TEXT_FIELDS.items():
            setattr(member, attr, data.get(key) or None)

        members.append(member)
        self._save_all(members)
        logger.info(f"Created member {member.name} ({member.id})")
        return member

    def update(self, member_id: str, updates: Dict[str, Any]) -> Member:
        members = self.list_members()
        member = next((m for m in members if m.id == member_id), None)
        if not member:
            raise NotFound("Member not found")

        if "name" in updates:
            name = (updates.get("name") or "").strip()
            if not name:
                raise ValidationError("name cannot be empty")
            member.name = name
        if updates.get("color"):
            member.color = updates["color"]
        if "projectIds" in updates:
            member.project_ids = list(updates.get("projectIds") or [])
        for key, attr in TEXT_FIELDS.items():
            if key in updates:
                setattr(member, attr, updates.get(key) or None)

        self._save_all(members)
        return member

    def delete(self, member_id: str) -> Member:
        members = self.list_members()
        member = next((m for m in members if m.id == member_id), None)
        if not member:
            raise NotFound("Member not found")
        self._save_all([m for m in members if m.id != member_id])
        return member

    # ── Project membership ───────────────────────────────────────────────────

    def add_to_project(self, member_id: str, project_id: str) -> None:
        members = self.list_members()
        member = next((m for m in members if m.id == member_id), None)
        if member and project_id not in member.project_ids:
            member.project_ids.append(project_id)
            self._save_all(members)

    def remove_from_project(self, member_id: str, project_id: str) -> None:
        members = self.list_members()
        member = next((m for m in members if m.id == member_id), None)
        if member and project_id in member.project_ids:
            member.project_ids = [p for p in member.project_ids if p != project_id]
            self._save_all(members)

    def sync_project(self, project_id: str, member_ids: Iterable[str]) -> None:
        """Make exactly `member_ids` list project_id among their projectIds."""
        wanted = set(member_ids)
        members = self.list_members()
        changed = False
        for member in members:
            has = project_id in member.project_ids
            if member.id in wanted and not has:
                member.project_ids.append(project_id)
                changed = True
            elif member.id not in wanted and has:
                member.project_ids = [p for p in member.project_ids if p != project_id]
                changed = True
        if changed:
            self._save_all(members)


def member_activity(member_id: str, projects, tasks, scheduled) -> List[Dict[str, Any]]:
    """
    Everything assigned to a member: kanban tasks first (per project), then
    weekly scheduled slots.

    Args:
        member_id: Member to look up
        projects: ProjectStore
        tasks: TaskStore
        scheduled: ScheduledStore
    """
    activity = []
    for project in projects.list_projects():
        for task in tasks.list_tasks(project.slug):
            if task.assigned_member_id == member_id:
                activity.append({
                    "taskId": task.id,
                    "taskTitle": task.title,
                    "status": task.status.value,
                    "projectId": project.slug,
                    "projectName": project.name,
                    "source": "project",
                })

    for slot in scheduled.list_tasks():
        if slot.assigned_member_id == member_id:
            activity.append({
                "taskId": slot.id,
                "taskTitle": slot.title,
                "status": TaskStatus.RECURRING.value,
                "projectId": "",
                "projectName": slot.slot_label,
                "source": "scheduled",
            })
    return activity
