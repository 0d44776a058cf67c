"""
Project storage backend.

Layout:
    projects/{slug}/project.json
    projects/{slug}/tasks/{taskId}.md
    projects/{slug}/attachments/{taskId}/...

A project's slug is fixed at creation (it names the directory).
"""
import logging
from pathlib import Path
from typing import List, Optional, Dict, Any

from .errors import NotFound, ValidationError
from .schema import Project, PROJECT_COLORS
from .storage import read_json, write_json, list_dirs, delete_dir
from .utils import generate_id, slugify, unique_slug, utc_now

logger = logging.getLogger(__name__)


class ProjectStore:
    """Flat-file store for projects."""

    def __init__(self, data_dir: str):
        self.root = Path(data_dir) / "projects"

    def project_dir(self, slug: str) -> Path:
        return self.root / slug

    def _project_file(self, slug: str) -> Path:
        return self.project_dir(slug) / "project.json"

    def _save(self, project: Project) -> None:
        write_json(self._project_file(project.slug), project.to_dict())

    def list_projects(self) -> List[Project]:
        """All projects, newest first."""
        projects = []
        for slug in list_dirs(self.root):
            raw = read_json(self._project_file(slug))
            if raw:
                projects.append(Project.from_dict(raw))
        projects.sort(key=lambda p: p.created_at, reverse=True)
        return projects

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.list_projects():
            if project.id == project_id:
                return project
        return None

    def get_by_slug(self, slug: str) -> Optional[Project]:
        if not slug or "/" in slug or slug.startswith("."):
            return None
        raw = read_json(self._project_file(slug))
        return Project.from_dict(raw) if raw else None

    def resolve(self, id_or_slug: str) -> Project:
        """Look up by slug first, then by id. Raises NotFound."""
        project = self.get_by_slug(id_or_slug) or self.get(id_or_slug)
        if not project:
            raise NotFound("Project not found")
        return project

    def create(self, data: Dict[str, Any]) -> Project:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")

        existing = self.list_projects()
        slug = unique_slug(slugify(name) or "project", (p.slug for p in existing))
        now = utc_now()
        project = Project(
            id=generate_id(),
            slug=slug,
            name=name,
            description=data.get("description") or None,
            color=data.get("color") or PROJECT_COLORS[len(existing) % len(PROJECT_COLORS)],
            member_ids=list(data.get("memberIds") or []),
            created_at=now,
            updated_at=now,
        )
        (self.project_dir(slug) / "tasks").mkdir(parents=True, exist_ok=True)
        self._save(project)
        logger.info(f"Created project {project.slug} ({project.id})")
        return project

    def update(self, id_or_slug: str, updates: Dict[str, Any]) -> Project:
        project = self.resolve(id_or_slug)

        if "name" in updates:
            name = (updates.get("name") or "").strip()
            if not name:
                raise ValidationError("name cannot be empty")
            project.name = name
        if "description" in updates:
            project.description = updates.get("description") or None
        if "color" in updates and updates.get("color"):
            project.color = updates["color"]
        if "memberIds" in updates:
            project.member_ids = list(updates.get("memberIds") or [])

        project.updated_at = utc_now()
        self._save(project)
        return project

    def delete(self, id_or_slug: str) -> Project:
        """Remove the project directory: descriptor, tasks and attachment blobs."""
        project = self.resolve(id_or_slug)
        delete_dir(self.project_dir(project.slug))
        logger.info(f"Deleted project {project.slug}")
        return project
