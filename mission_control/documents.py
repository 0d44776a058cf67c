"""
Document and folder storage backend.

Documents are markdown files (documents/{slug}.md) with YAML frontmatter.
Folders live in a single index file (documents/index.json):

    {"folders": [...], "rootFolderIds": [...]}

The folder tree is handled as an arena (id -> Folder) with parent pointers.
Moves are validated against the descendant set of the moved folder, computed
iteratively with a visited-set guard, so a corrupted (cyclic) index cannot
hang the server.
"""
import logging
from collections import deque
from pathlib import Path
from typing import List, Optional, Dict, Any, Set

from .errors import NotFound, ValidationError
from .schema import Document, Folder
from .storage import read_json, write_json, read_markdown, write_markdown, list_files, delete_file
from .utils import generate_id, slugify, unique_slug, utc_now

logger = logging.getLogger(__name__)


def _folder_ref(value: Any, field: str) -> Optional[str]:
    """A folder id from a request body; empty means the root."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string or null")
    return value or None


class FolderIndex:
    """In-memory view of documents/index.json."""

    def __init__(self, folders: List[Folder], root_folder_ids: List[str]):
        self.folders: Dict[str, Folder] = {f.id: f for f in folders}
        self.root_folder_ids = list(root_folder_ids)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FolderIndex":
        data = data or {}
        folders = [Folder.from_dict(f) for f in data.get("folders") or []]
        return cls(folders, data.get("rootFolderIds") or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folders": [f.to_dict() for f in self.folders.values()],
            "rootFolderIds": list(self.root_folder_ids),
        }

    def children(self, parent_id: Optional[str]) -> List[Folder]:
        kids = [f for f in self.folders.values() if f.parent_id == parent_id]
        kids.sort(key=lambda f: f.order)
        return kids

    def subtree_ids(self, folder_id: str) -> Set[str]:
        """folder_id plus every descendant id (BFS, cycle-safe)."""
        visited = {folder_id}
        queue = deque([folder_id])
        while queue:
            current = queue.popleft()
            for child in self.folders.values():
                if child.parent_id == current and child.id not in visited:
                    visited.add(child.id)
                    queue.append(child.id)
        return visited

    def renumber(self, parent_id: Optional[str]) -> None:
        for index, folder in enumerate(self.children(parent_id)):
            folder.order = index


class DocumentStore:
    """Flat-file store for documents and the folder tree."""

    def __init__(self, data_dir: str):
        self.root = Path(data_dir) / "documents"
        self.index_file = self.root / "index.json"

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Folders
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def load_index(self) -> FolderIndex:
        return FolderIndex.from_dict(read_json(self.index_file))

    def _save_index(self, index: FolderIndex) -> None:
        write_json(self.index_file, index.to_dict())

    def list_folders(self) -> List[Folder]:
        return list(self.load_index().folders.values())

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        return self.load_index().folders.get(folder_id)

    def create_folder(self, data: Dict[str, Any]) -> Folder:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")

        index = self.load_index()
        parent_id = _folder_ref(data.get("parentId"), "parentId")
        if parent_id and parent_id not in index.folders:
            raise NotFound("Parent folder not found")

        folder = Folder(
            id=generate_id(),
            slug=unique_slug(slugify(name) or "folder", (f.slug for f in index.folders.values())),
            name=name,
            parent_id=parent_id,
            order=len(index.children(parent_id)),
        )
        index.folders[folder.id] = folder
        if not parent_id:
            index.root_folder_ids.append(folder.id)
        self._save_index(index)
        logger.info(f"Created folder {folder.slug}")
        return folder

    def update_folder(self, folder_id: str, updates: Dict[str, Any]) -> Folder:
        """
        Rename and/or move a folder.

        Renaming recomputes the slug. Moving under the folder itself or one of
        its descendants raises ValidationError; a valid move appends the folder
        to its new siblings and closes the gap among the old ones.
        """
        index = self.load_index()
        folder = index.folders.get(folder_id)
        if not folder:
            raise NotFound("Folder not found")

        if "name" in updates:
            name = (updates.get("name") or "").strip()
            if not name:
                raise ValidationError("name cannot be empty")
            if name != folder.name:
                folder.name = name
                others = (f.slug for f in index.folders.values() if f.id != folder.id)
                folder.slug = unique_slug(slugify(name) or "folder", others)

        if "parentId" in updates:
            new_parent = _folder_ref(updates.get("parentId"), "parentId")
            if new_parent != folder.parent_id:
                if new_parent is not None:
                    if new_parent not in index.folders:
                        raise NotFound("Parent folder not found")
                    if new_parent in index.subtree_ids(folder.id):
                        raise ValidationError("Cannot move a folder into itself or its descendants")
                old_parent = folder.parent_id
                folder.parent_id = new_parent
                folder.order = len([f for f in index.children(new_parent) if f.id != folder.id])
                index.renumber(old_parent)

                if new_parent is None and folder.id not in index.root_folder_ids:
                    index.root_folder_ids.append(folder.id)
                elif new_parent is not None:
                    index.root_folder_ids = [fid for fid in index.root_folder_ids if fid != folder.id]

        if "order" in updates and "parentId" not in updates:
            try:
                folder.order = int(updates["order"])
            except (TypeError, ValueError):
                raise ValidationError("order must be an integer")

        self._save_index(index)
        return folder

    def delete_folder(self, folder_id: str) -> List[str]:
        """Delete a folder, its descendants and their documents. Returns removed folder ids."""
        index = self.load_index()
        folder = index.folders.get(folder_id)
        if not folder:
            raise NotFound("Folder not found")

        doomed = index.subtree_ids(folder_id)
        for fid in doomed:
            index.folders.pop(fid, None)
        index.root_folder_ids = [fid for fid in index.root_folder_ids if fid not in doomed]
        index.renumber(folder.parent_id)
        self._save_index(index)

        for doc in self.list_documents():
            if doc.folder_id in doomed:
                self.delete_document(doc.id)

        logger.info(f"Deleted folder {folder.slug} ({len(doomed)} folders)")
        return sorted(doomed)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Documents
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _document_path(self, slug: str) -> Path:
        return self.root / f"{slug}.md"

    def _save_document(self, doc: Document) -> None:
        write_markdown(self._document_path(doc.slug), doc.frontmatter(), doc.content)

    def list_documents(self) -> List[Document]:
        """All documents, most recently updated first."""
        documents = []
        for name in list_files(self.root, ".md"):
            result = read_markdown(self.root / name)
            if result is None:
                continue
            data, body = result
            data["content"] = body.strip()
            documents.append(Document.from_dict(data))
        documents.sort(key=lambda d: d.updated_at, reverse=True)
        return documents

    def get_document(self, doc_id: str) -> Optional[Document]:
        for doc in self.list_documents():
            if doc.id == doc_id:
                return doc
        return None

    def require_document(self, doc_id: str) -> Document:
        doc = self.get_document(doc_id)
        if not doc:
            raise NotFound("Document not found")
        return doc

    def list_by_folder(self, folder_id: Optional[str]) -> List[Document]:
        return [d for d in self.list_documents() if d.folder_id == folder_id]

    def create_document(self, data: Dict[str, Any]) -> Document:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required")

        folder_id = _folder_ref(data.get("folderId"), "folderId")
        if folder_id and not self.get_folder(folder_id):
            raise NotFound("Folder not found")

        existing = self.list_documents()
        now = utc_now()
        doc = Document(
            id=generate_id(),
            slug=unique_slug(slugify(title) or "document", (d.slug for d in existing)),
            title=title,
            content=data.get("content") or "",
            folder_id=folder_id,
            created_at=now,
            updated_at=now,
        )
        self.root.mkdir(parents=True, exist_ok=True)
        self._save_document(doc)
        logger.info(f"Created document {doc.slug}")
        return doc

    def update_document(self, doc_id: str, updates: Dict[str, Any]) -> Document:
        """Merge updates. The slug (file name) is fixed at creation."""
        doc = self.require_document(doc_id)

        if "title" in updates:
            title = (updates.get("title") or "").strip()
            if not title:
                raise ValidationError("title cannot be empty")
            doc.title = title
        if "content" in updates:
            doc.content = updates.get("content") or ""
        if "folderId" in updates:
            folder_id = _folder_ref(updates.get("folderId"), "folderId")
            if folder_id and not self.get_folder(folder_id):
                raise NotFound("Folder not found")
            doc.folder_id = folder_id
        if "linkedTaskIds" in updates:
            doc.linked_task_ids = list(updates.get("linkedTaskIds") or [])
        if "linkedProjectIds" in updates:
            doc.linked_project_ids = list(updates.get("linkedProjectIds") or [])

        doc.updated_at = utc_now()
        self._save_document(doc)
        return doc

    def delete_document(self, doc_id: str) -> Document:
        doc = self.require_document(doc_id)
        delete_file(self._document_path(doc.slug))
        return doc
