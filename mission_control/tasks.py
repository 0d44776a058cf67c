"""
Task storage backend.

One markdown file per task under projects/{slug}/tasks/{taskId}.md: the
frontmatter holds every field except the description, which is the body.
Uploaded attachment blobs live under projects/{slug}/attachments/{taskId}/.

Ordering: `order` is dense and zero-based within a (project, status)
partition. Creating a task appends it to its partition; a status change
closes the gap it leaves behind and appends it to the new partition;
reorder() rewrites a whole partition.
"""
import logging
import re
from pathlib import Path
from typing import List, Optional, Dict, Any, Iterable, Tuple

from .errors import NotFound, ValidationError, UpstreamIOError
from .schema import (
    Task, TaskStatus, TaskPriority, TaskAttachment, TaskComment,
    AttachmentSource, Document, DOC_LINK_MIME,
)
from .storage import read_markdown, write_markdown, list_files, delete_file, delete_dir
from .utils import generate_id, utc_now

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"@([\w.\-]+)")


def sanitize_file_name(name: str) -> str:
    """Replace anything but word chars, dots and hyphens with underscores."""
    return re.sub(r"[^\w.\-]+", "_", name)


def extract_mentions(content: str) -> List[str]:
    """Unique @name tokens in a comment, in order of first appearance."""
    seen = []
    for name in MENTION_RE.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


def _parse_status(value: Any) -> TaskStatus:
    if not TaskStatus.is_valid(value):
        raise ValidationError(f"Invalid status: {value}")
    return TaskStatus(value)


def _parse_priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise ValidationError(f"Invalid priority: {value}")


def _sort_key(task: Task):
    return (task.order, task.created_at)


class TaskStore:
    """Flat-file store for the tasks of every project, keyed by project slug."""

    def __init__(self, data_dir: str):
        self.root = Path(data_dir) / "projects"

    # ── Paths ────────────────────────────────────────────────────────────────

    def tasks_dir(self, project_slug: str) -> Path:
        return self.root / project_slug / "tasks"

    def task_path(self, project_slug: str, task_id: str) -> Path:
        return self.tasks_dir(project_slug) / f"{task_id}.md"

    def attachments_dir(self, project_slug: str, task_id: str) -> Path:
        return self.root / project_slug / "attachments" / task_id

    def attachment_path(self, project_slug: str, task_id: str, storage_name: str) -> Path:
        return self.attachments_dir(project_slug, task_id) / storage_name

    # ── Read / write ─────────────────────────────────────────────────────────

    def _load(self, path: Path) -> Optional[Task]:
        result = read_markdown(path)
        if result is None:
            return None
        data, body = result
        data["description"] = body.strip()
        return Task.from_dict(data)

    def _save(self, project_slug: str, task: Task) -> None:
        write_markdown(self.task_path(project_slug, task.id), task.frontmatter(), task.description)

    def list_tasks(self, project_slug: str) -> List[Task]:
        """All tasks of a project, ordered by their partition position."""
        tasks_dir = self.tasks_dir(project_slug)
        tasks = []
        for name in list_files(tasks_dir, ".md"):
            task = self._load(tasks_dir / name)
            if task:
                tasks.append(task)
        tasks.sort(key=_sort_key)
        return tasks

    def list_by_status(self, project_slug: str, status: TaskStatus) -> List[Task]:
        return [t for t in self.list_tasks(project_slug) if t.status == status]

    def get(self, project_slug: str, task_id: str) -> Optional[Task]:
        if not task_id or "/" in task_id:
            return None
        return self._load(self.task_path(project_slug, task_id))

    def require(self, project_slug: str, task_id: str) -> Task:
        task = self.get(project_slug, task_id)
        if not task:
            raise NotFound("Task not found")
        return task

    # ── CRUD ─────────────────────────────────────────────────────────────────

    def create(self, project_slug: str, project_id: str, data: Dict[str, Any]) -> Task:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required")

        if data.get("recurring") is True:
            status = TaskStatus.RECURRING
        elif data.get("status"):
            status = _parse_status(data["status"])
        else:
            status = TaskStatus.BACKLOG

        priority = _parse_priority(data["priority"]) if data.get("priority") else TaskPriority.MEDIUM

        now = utc_now()
        task = Task(
            id=generate_id(),
            project_id=data.get("projectId") or project_id,
            title=title,
            description=data.get("description") or "",
            status=status,
            priority=priority,
            assigned_member_id=data.get("assignedMemberId") or None,
            linked_document_ids=list(data.get("linkedDocumentIds") or []),
            order=len(self.list_by_status(project_slug, status)),
            created_at=now,
            updated_at=now,
            completed_at=now if status == TaskStatus.DONE else None,
        )
        self._save(project_slug, task)
        logger.info(f"Created task {task.id} in {project_slug}/{status.value}")
        return task

    def update(self, project_slug: str, task_id: str, updates: Dict[str, Any]) -> Task:
        """
        Merge `updates` into the task.

        Status and the recurring flag are kept consistent:
          - recurring=True always moves the task to the recurring column
          - otherwise an explicit status wins and the flag follows it
          - recurring=False alone moves a recurring task to the backlog
        """
        task = self.require(project_slug, task_id)
        old_status = task.status

        if "title" in updates:
            title = (updates.get("title") or "").strip()
            if not title:
                raise ValidationError("title cannot be empty")
            task.title = title
        if "description" in updates:
            task.description = updates.get("description") or ""
        if "priority" in updates:
            task.priority = _parse_priority(updates.get("priority"))
        if "assignedMemberId" in updates:
            task.assigned_member_id = updates.get("assignedMemberId") or None
        if "linkedDocumentIds" in updates:
            task.linked_document_ids = list(updates.get("linkedDocumentIds") or [])
        if "attachments" in updates:
            task.attachments = [TaskAttachment.from_dict(a) for a in updates.get("attachments") or []]
        if "comments" in updates:
            task.comments = [TaskComment.from_dict(c) for c in updates.get("comments") or []]

        if updates.get("recurring") is True:
            task.status = TaskStatus.RECURRING
        elif updates.get("status"):
            task.status = _parse_status(updates["status"])
        elif "recurring" in updates and task.status == TaskStatus.RECURRING:
            task.status = TaskStatus.BACKLOG

        if task.status == TaskStatus.DONE and old_status != TaskStatus.DONE and not task.completed_at:
            task.completed_at = utc_now()

        if "order" in updates:
            try:
                task.order = int(updates["order"])
            except (TypeError, ValueError):
                raise ValidationError("order must be an integer")
        elif task.status != old_status:
            self._move_between_partitions(project_slug, task, old_status)

        task.updated_at = utc_now()
        self._save(project_slug, task)
        return task

    def _move_between_partitions(self, project_slug: str, task: Task, old_status: TaskStatus) -> None:
        """Close the gap in the old partition and append task to the new one."""
        others = [t for t in self.list_tasks(project_slug) if t.id != task.id]

        remaining = [t for t in others if t.status == old_status]
        self._renumber(project_slug, remaining)

        task.order = sum(1 for t in others if t.status == task.status)

    def _renumber(self, project_slug: str, tasks: Iterable[Task]) -> None:
        """Rewrite order = list position, saving only tasks that changed."""
        for index, task in enumerate(tasks):
            if task.order != index:
                task.order = index
                self._save(project_slug, task)

    def delete(self, project_slug: str, task_id: str) -> Task:
        task = self.require(project_slug, task_id)
        delete_file(self.task_path(project_slug, task_id))
        delete_dir(self.attachments_dir(project_slug, task_id))
        self._renumber(project_slug, self.list_by_status(project_slug, task.status))
        logger.info(f"Deleted task {task_id} from {project_slug}")
        return task

    def reorder(self, project_slug: str, task_ids: List[str], status: Any) -> List[Task]:
        """
        Rewrite a whole status partition.

        Listed tasks take positions 0..n-1 in the given order and are moved
        into `status`. Tasks already in that status but missing from the
        list keep their relative order after them, so the partition stays
        dense. Unknown ids are ignored.
        """
        target = _parse_status(status)
        if not isinstance(task_ids, list) or not all(isinstance(t, str) for t in task_ids):
            raise ValidationError("taskIds must be a list of ids")

        tasks = self.list_tasks(project_slug)
        by_id = {t.id: t for t in tasks}

        ordered = []
        seen = set()
        for task_id in task_ids:
            task = by_id.get(task_id)
            if task and task.id not in seen:
                ordered.append(task)
                seen.add(task.id)
        ordered += [t for t in tasks if t.status == target and t.id not in seen]

        moved_from = set()
        now = utc_now()
        for index, task in enumerate(ordered):
            changed = task.order != index or task.status != target
            if task.status != target:
                moved_from.add(task.status)
                if target == TaskStatus.DONE and not task.completed_at:
                    task.completed_at = now
                task.status = target
            task.order = index
            if changed:
                task.updated_at = now
                self._save(project_slug, task)

        for old_status in moved_from:
            self._renumber(project_slug, [t for t in tasks if t.status == old_status])

        return ordered

    # ── Comments ─────────────────────────────────────────────────────────────

    def add_comment(self, project_slug: str, task_id: str, data: Dict[str, Any]) -> Task:
        content = (data.get("content") or "").strip()
        if not content:
            raise ValidationError("content is required")
        task = self.require(project_slug, task_id)
        comment = TaskComment(
            id=generate_id(),
            author_name=(data.get("authorName") or "").strip() or "Anonymous",
            content=content,
        )
        task.comments.append(comment)
        task.updated_at = utc_now()
        self._save(project_slug, task)
        mentions = extract_mentions(content)
        if mentions:
            logger.info(f"Comment on {task_id} mentions {', '.join(mentions)}")
        return task

    # ── Attachments ──────────────────────────────────────────────────────────

    def add_uploads(
        self,
        project_slug: str,
        task_id: str,
        files: List[Tuple[str, bytes, str]],
    ) -> Task:
        """Store (filename, content, mime type) triples as task attachments."""
        if not files:
            raise ValidationError("No files provided")
        task = self.require(project_slug, task_id)

        for filename, content, mime_type in files:
            attachment_id = generate_id()
            sanitized = sanitize_file_name(filename or "attachment")
            storage_name = f"{attachment_id}{Path(sanitized).suffix}"
            blob = self.attachment_path(project_slug, task_id, storage_name)
            try:
                blob.parent.mkdir(parents=True, exist_ok=True)
                blob.write_bytes(content)
            except OSError as e:
                raise UpstreamIOError(f"Failed to store attachment {filename}: {e}") from e
            task.attachments.append(TaskAttachment(
                id=attachment_id,
                name=filename or sanitized,
                size=len(content),
                type=mime_type or "application/octet-stream",
                source=AttachmentSource.UPLOAD,
                storage_name=storage_name,
            ))

        task.updated_at = utc_now()
        self._save(project_slug, task)
        return task

    def link_documents(self, project_slug: str, task_id: str, documents: List[Document]) -> Task:
        """Attach documents by reference. Already-linked documents are skipped."""
        task = self.require(project_slug, task_id)
        linked = {a.document_id for a in task.attachments if a.document_id}

        added = False
        for doc in documents:
            if doc.id in linked:
                continue
            linked.add(doc.id)
            task.attachments.append(TaskAttachment(
                id=generate_id(),
                name=doc.title,
                size=len(doc.content.encode("utf-8")),
                type=DOC_LINK_MIME,
                source=AttachmentSource.DOCS,
                document_id=doc.id,
            ))
            if doc.id not in task.linked_document_ids:
                task.linked_document_ids.append(doc.id)
            added = True

        if added:
            task.updated_at = utc_now()
            self._save(project_slug, task)
        return task

    def get_attachment(self, project_slug: str, task_id: str, attachment_id: str) -> Tuple[TaskAttachment, Optional[Path]]:
        """The attachment and its blob path (None for document links)."""
        task = self.require(project_slug, task_id)
        for attachment in task.attachments:
            if attachment.id == attachment_id:
                if attachment.source == AttachmentSource.DOCS:
                    return attachment, None
                storage_name = attachment.storage_name or attachment.id
                return attachment, self.attachment_path(project_slug, task_id, storage_name)
        raise NotFound("Attachment not found")

    def delete_attachment(self, project_slug: str, task_id: str, attachment_id: str) -> Task:
        task = self.require(project_slug, task_id)
        attachment = next((a for a in task.attachments if a.id == attachment_id), None)
        if not attachment:
            raise NotFound("Attachment not found")

        task.attachments = [a for a in task.attachments if a.id != attachment_id]
        if attachment.source == AttachmentSource.DOCS:
            still_linked = {a.document_id for a in task.attachments if a.document_id}
            if attachment.document_id not in still_linked:
                task.linked_document_ids = [
                    d for d in task.linked_document_ids if d != attachment.document_id
                ]
        else:
            storage_name = attachment.storage_name or attachment.id
            delete_file(self.attachment_path(project_slug, task_id, storage_name))

        task.updated_at = utc_now()
        self._save(project_slug, task)
        return task
