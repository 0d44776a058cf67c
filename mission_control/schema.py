"""
Mission Control data model.

Every record is a dataclass with to_dict()/from_dict(). The dict form uses
camelCase keys and is both the JSON wire format and the on-disk format.
from_dict() is the storage read boundary: legacy field names
(developerIds, assignedDeveloperId) are upcast there and never travel further.

Task lifecycle (kanban columns):
  Recurring | Backlog | To Do | In Progress | Done

A task's `recurring` flag always mirrors `status == recurring`.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .utils import utc_now


class TaskStatus(Enum):
    """Kanban columns, in display order."""
    RECURRING = "recurring"
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @classmethod
    def from_str(cls, value: Optional[str]) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.BACKLOG

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and value in {s.value for s in cls}


STATUS_LABELS = {
    TaskStatus.RECURRING: "Recurring",
    TaskStatus.BACKLOG: "Backlog",
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.DONE: "Done",
}


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "TaskPriority":
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


class AttachmentSource(Enum):
    """Where an attachment's bytes live."""
    UPLOAD = "upload"   # blob under attachments/{taskId}/
    DOCS = "docs"       # link to a Document, no blob


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


DAYS_OF_WEEK = [
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
]

PROJECT_COLORS = [
    "#6366f1",  # Indigo
    "#8b5cf6",  # Violet
    "#ec4899",  # Pink
    "#ef4444",  # Red
    "#f97316",  # Orange
    "#eab308",  # Yellow
    "#22c55e",  # Green
    "#14b8a6",  # Teal
    "#06b6d4",  # Cyan
    "#3b82f6",  # Blue
]

MEMBER_COLORS = [
    "#6366f1",
    "#8b5cf6",
    "#ec4899",
    "#f43f5e",
    "#f97316",
    "#eab308",
    "#22c55e",
    "#14b8a6",
    "#06b6d4",
    "#3b82f6",
]

DOC_LINK_MIME = "application/x-mission-control-doc-link"


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None (optional fields that are unset)."""
    return {k: v for k, v in data.items() if v is not None}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Projects
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Project:
    id: str
    slug: str
    name: str
    color: str
    description: Optional[str] = None
    member_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "memberIds": list(self.member_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        member_ids = data.get("memberIds")
        if member_ids is None:
            # Backwards compat: projects written before the crew rename
            member_ids = data.get("developerIds") or []
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            name=data.get("name", ""),
            description=data.get("description"),
            color=data.get("color", PROJECT_COLORS[0]),
            member_ids=list(member_ids),
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class TaskAttachment:
    """A file uploaded to a task, or a link to a Document."""
    id: str
    name: str
    size: int
    type: str
    source: AttachmentSource = AttachmentSource.UPLOAD
    storage_name: Optional[str] = None
    document_id: Optional[str] = None
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "source": self.source.value,
            "storageName": self.storage_name,
            "documentId": self.document_id,
            "createdAt": self.created_at,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskAttachment":
        # Older attachments carry no source tag; infer it from the provenance field
        source = data.get("source")
        if source not in ("upload", "docs"):
            source = "docs" if data.get("documentId") else "upload"
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            type=data.get("type") or "application/octet-stream",
            source=AttachmentSource(source),
            storage_name=data.get("storageName"),
            document_id=data.get("documentId"),
            created_at=data.get("createdAt") or utc_now(),
        )


@dataclass
class TaskComment:
    id: str
    author_name: str
    content: str
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "authorName": self.author_name,
            "content": self.content,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskComment":
        return cls(
            id=data.get("id", ""),
            author_name=data.get("authorName", ""),
            content=data.get("content", ""),
            created_at=data.get("createdAt") or utc_now(),
        )


@dataclass
class Task:
    """One kanban card. `description` is the markdown body of the task file."""
    id: str
    project_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.BACKLOG
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_member_id: Optional[str] = None
    linked_document_ids: List[str] = field(default_factory=list)
    order: int = 0
    attachments: List[TaskAttachment] = field(default_factory=list)
    comments: List[TaskComment] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @property
    def recurring(self) -> bool:
        return self.status == TaskStatus.RECURRING

    def frontmatter(self) -> Dict[str, Any]:
        """Everything except the description, which is the markdown body."""
        data = self.to_dict()
        data.pop("description", None)
        return data

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "recurring": self.recurring,
            "priority": self.priority.value,
            "assignedMemberId": self.assigned_member_id,
            "linkedDocumentIds": list(self.linked_document_ids),
            "order": self.order,
            "attachments": [a.to_dict() for a in self.attachments],
            "comments": [c.to_dict() for c in self.comments],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        status = TaskStatus.from_str(data.get("status"))
        if data.get("recurring") is True and "status" not in data:
            status = TaskStatus.RECURRING

        assigned = data.get("assignedMemberId")
        if assigned is None:
            # Backwards compat: tasks written before the crew rename
            assigned = data.get("assignedDeveloperId")

        return cls(
            id=data.get("id", ""),
            project_id=data.get("projectId", ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            status=status,
            priority=TaskPriority.from_str(data.get("priority")),
            assigned_member_id=assigned or None,
            linked_document_ids=list(data.get("linkedDocumentIds") or []),
            order=int(data.get("order") or 0),
            attachments=[TaskAttachment.from_dict(a) for a in data.get("attachments") or []],
            comments=[TaskComment.from_dict(c) for c in data.get("comments") or []],
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
            completed_at=data.get("completedAt"),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Crew
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Member:
    id: str
    name: str
    color: str
    role: Optional[str] = None
    description: Optional[str] = None
    llm_model: Optional[str] = None
    soul_md: Optional[str] = None      # bot-managed
    memory_md: Optional[str] = None    # bot-managed
    project_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "description": self.description,
            "color": self.color,
            "llmModel": self.llm_model,
            "soulMd": self.soul_md,
            "memoryMd": self.memory_md,
            "projectIds": list(self.project_ids),
            "createdAt": self.created_at,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            color=data.get("color", MEMBER_COLORS[0]),
            role=data.get("role"),
            description=data.get("description"),
            llm_model=data.get("llmModel"),
            soul_md=data.get("soulMd"),
            memory_md=data.get("memoryMd"),
            project_ids=list(data.get("projectIds") or []),
            created_at=data.get("createdAt") or utc_now(),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Docs
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Document:
    id: str
    slug: str
    title: str
    content: str = ""
    folder_id: Optional[str] = None
    linked_task_ids: List[str] = field(default_factory=list)
    linked_project_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def frontmatter(self) -> Dict[str, Any]:
        data = self.to_dict()
        data.pop("content", None)
        return data

    def to_dict(self) -> Dict[str, Any]:
        # folderId stays present even when null: null means "root"
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "content": self.content,
            "folderId": self.folder_id,
            "linkedTaskIds": list(self.linked_task_ids),
            "linkedProjectIds": list(self.linked_project_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            content=data.get("content") or "",
            folder_id=data.get("folderId") or None,
            linked_task_ids=list(data.get("linkedTaskIds") or []),
            linked_project_ids=list(data.get("linkedProjectIds") or []),
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )


@dataclass
class Folder:
    id: str
    slug: str
    name: str
    parent_id: Optional[str] = None
    order: int = 0
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "parentId": self.parent_id,
            "order": self.order,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            name=data.get("name", ""),
            parent_id=data.get("parentId") or None,
            order=int(data.get("order") or 0),
            created_at=data.get("createdAt") or utc_now(),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Schedule
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class ScheduledTask:
    """A weekly slot (day + HH:MM). Not a kanban card."""
    id: str
    title: str
    time: str
    day_of_week: str
    color: str
    description: str = ""
    assigned_member_id: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def slot_label(self) -> str:
        """'Monday at 09:00'."""
        return f"{self.day_of_week.capitalize()} at {self.time}"

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "time": self.time,
            "dayOfWeek": self.day_of_week,
            "color": self.color,
            "assignedMemberId": self.assigned_member_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledTask":
        assigned = data.get("assignedMemberId")
        if assigned is None:
            assigned = data.get("assignedDeveloperId")
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            time=data.get("time", ""),
            day_of_week=data.get("dayOfWeek", ""),
            color=data.get("color", ""),
            assigned_member_id=assigned or None,
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Memory
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class ConversationMessage:
    role: MessageRole
    content: str
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content, "timestamp": self.timestamp}


@dataclass
class DayConversation:
    date: str
    messages: List[ConversationMessage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "messages": [m.to_dict() for m in self.messages]}
