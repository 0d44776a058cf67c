"""
Tests for the project and task stores.

Covers:
    - ProjectStore   — slugs, lookup by id or slug, update, cascade delete
    - TaskStore      — status/recurring consistency, completedAt, dense order,
                       reorder, comments, attachments
"""

from pathlib import Path

import pytest

from mission_control.errors import NotFound, ValidationError
from mission_control.schema import TaskStatus, AttachmentSource, DOC_LINK_MIME
from mission_control.tasks import sanitize_file_name, extract_mentions


def orders(task_store, slug, status):
    return [(t.title, t.order) for t in task_store.list_by_status(slug, status)]


def assert_dense(task_store, slug):
    for status in TaskStatus:
        values = sorted(t.order for t in task_store.list_by_status(slug, status))
        assert values == list(range(len(values))), f"{status.value} not dense: {values}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Projects
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestProjectStore:

    def test_duplicate_names_get_suffixed_slugs(self, project_store):
        first = project_store.create({"name": "Alpha"})
        second = project_store.create({"name": "Alpha"})
        assert first.slug == "alpha"
        assert second.slug == "alpha-1"

    def test_name_required(self, project_store):
        with pytest.raises(ValidationError):
            project_store.create({"name": "   "})

    def test_resolve_by_slug_or_id(self, project_store, project):
        assert project_store.resolve("alpha").id == project.id
        assert project_store.resolve(project.id).slug == "alpha"

    def test_resolve_unknown_raises(self, project_store):
        with pytest.raises(NotFound):
            project_store.resolve("nope")

    def test_default_colors_cycle(self, project_store):
        a = project_store.create({"name": "A"})
        b = project_store.create({"name": "B"})
        assert a.color != b.color

    def test_update_merges(self, project_store, project):
        updated = project_store.update("alpha", {"description": "First project"})
        assert updated.description == "First project"
        assert updated.name == "Alpha"
        assert updated.slug == "alpha"

    def test_list_newest_first(self, project_store):
        project_store.create({"name": "Older"})
        project_store.create({"name": "Newer"})
        names = [p.name for p in project_store.list_projects()]
        assert names.index("Newer") <= names.index("Older")

    def test_delete_removes_tasks(self, project_store, task_store, project):
        task_store.create("alpha", project.id, {"title": "Doomed"})
        project_store.delete("alpha")
        assert project_store.get_by_slug("alpha") is None
        assert task_store.list_tasks("alpha") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTaskStatus:

    def test_defaults(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Plain"})
        assert task.status == TaskStatus.BACKLOG
        assert task.recurring is False
        assert task.order == 0

    def test_create_recurring_status_sets_flag(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Standup", "status": "recurring"})
        assert task.to_dict()["recurring"] is True

    def test_status_away_from_recurring_clears_flag(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Standup", "status": "recurring"})
        updated = task_store.update("alpha", task.id, {"status": "todo"})
        assert updated.status == TaskStatus.TODO
        assert updated.to_dict()["recurring"] is False

    def test_recurring_true_forces_status(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Sweep", "status": "todo"})
        updated = task_store.update("alpha", task.id, {"recurring": True, "status": "todo"})
        assert updated.status == TaskStatus.RECURRING

    def test_recurring_false_moves_to_backlog(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Sweep", "recurring": True})
        updated = task_store.update("alpha", task.id, {"recurring": False})
        assert updated.status == TaskStatus.BACKLOG

    def test_invalid_status_rejected(self, task_store, project):
        with pytest.raises(ValidationError):
            task_store.create("alpha", project.id, {"title": "x", "status": "someday"})

    def test_title_required(self, task_store, project):
        with pytest.raises(ValidationError):
            task_store.create("alpha", project.id, {"title": ""})

    def test_round_trips_through_disk(self, task_store, project):
        task = task_store.create("alpha", project.id, {
            "title": "Persist", "description": "## Notes\n\nbody", "priority": "high",
        })
        loaded = task_store.require("alpha", task.id)
        assert loaded.description == "## Notes\n\nbody"
        assert loaded.priority.value == "high"
        assert loaded.project_id == project.id


class TestCompletedAt:

    def test_set_on_first_entry_into_done(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Ship"})
        assert task.completed_at is None
        done = task_store.update("alpha", task.id, {"status": "done"})
        assert done.completed_at is not None

    def test_not_overwritten_on_reentry(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Ship"})
        first = task_store.update("alpha", task.id, {"status": "done"}).completed_at
        task_store.update("alpha", task.id, {"status": "todo"})
        again = task_store.update("alpha", task.id, {"status": "done"})
        assert again.completed_at == first


class TestOrdering:

    def test_create_appends_to_partition(self, task_store, project):
        for title in ("A", "B", "C"):
            task_store.create("alpha", project.id, {"title": title, "status": "todo"})
        assert orders(task_store, "alpha", TaskStatus.TODO) == [("A", 0), ("B", 1), ("C", 2)]

    def test_status_change_keeps_partitions_dense(self, task_store, project):
        a = task_store.create("alpha", project.id, {"title": "A", "status": "todo"})
        task_store.create("alpha", project.id, {"title": "B", "status": "todo"})
        task_store.create("alpha", project.id, {"title": "C", "status": "in_progress"})

        task_store.update("alpha", a.id, {"status": "in_progress"})

        assert orders(task_store, "alpha", TaskStatus.TODO) == [("B", 0)]
        assert orders(task_store, "alpha", TaskStatus.IN_PROGRESS) == [("C", 0), ("A", 1)]
        assert_dense(task_store, "alpha")

    def test_reorder_rewrites_partition(self, task_store, project):
        a = task_store.create("alpha", project.id, {"title": "A", "status": "todo"})
        b = task_store.create("alpha", project.id, {"title": "B", "status": "todo"})
        c = task_store.create("alpha", project.id, {"title": "C", "status": "todo"})

        task_store.reorder("alpha", [c.id, a.id, b.id], "todo")
        assert orders(task_store, "alpha", TaskStatus.TODO) == [("C", 0), ("A", 1), ("B", 2)]

    def test_reorder_moves_tasks_between_partitions(self, task_store, project):
        a = task_store.create("alpha", project.id, {"title": "A", "status": "todo"})
        task_store.create("alpha", project.id, {"title": "B", "status": "todo"})
        c = task_store.create("alpha", project.id, {"title": "C", "status": "done"})

        task_store.reorder("alpha", [a.id, c.id], "done")

        assert orders(task_store, "alpha", TaskStatus.DONE) == [("A", 0), ("C", 1)]
        assert orders(task_store, "alpha", TaskStatus.TODO) == [("B", 0)]
        assert task_store.require("alpha", a.id).completed_at is not None
        assert_dense(task_store, "alpha")

    def test_reorder_keeps_unlisted_tasks_dense(self, task_store, project):
        a = task_store.create("alpha", project.id, {"title": "A", "status": "todo"})
        task_store.create("alpha", project.id, {"title": "B", "status": "todo"})
        c = task_store.create("alpha", project.id, {"title": "C", "status": "todo"})

        task_store.reorder("alpha", [c.id, a.id, c.id, "ghost"], "todo")
        assert orders(task_store, "alpha", TaskStatus.TODO) == [("C", 0), ("A", 1), ("B", 2)]

    def test_reorder_invalid_status(self, task_store, project):
        with pytest.raises(ValidationError):
            task_store.reorder("alpha", [], "later")

    def test_delete_closes_gap(self, task_store, project):
        task_store.create("alpha", project.id, {"title": "A", "status": "todo"})
        b = task_store.create("alpha", project.id, {"title": "B", "status": "todo"})
        task_store.create("alpha", project.id, {"title": "C", "status": "todo"})

        task_store.delete("alpha", b.id)
        assert orders(task_store, "alpha", TaskStatus.TODO) == [("A", 0), ("C", 1)]


class TestComments:

    def test_add_comment(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Talk"})
        updated = task_store.add_comment("alpha", task.id, {"content": "ping @ana.b and @joe", "authorName": "Sam"})
        assert len(updated.comments) == 1
        assert updated.comments[0].author_name == "Sam"

    def test_anonymous_author(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Talk"})
        updated = task_store.add_comment("alpha", task.id, {"content": "hi"})
        assert updated.comments[0].author_name == "Anonymous"

    def test_empty_comment_rejected(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Talk"})
        with pytest.raises(ValidationError):
            task_store.add_comment("alpha", task.id, {"content": "  "})


def test_extract_mentions():
    assert extract_mentions("hey @ana.b, @joe and @ana.b again") == ["ana.b", "joe"]
    assert extract_mentions("no mentions") == []


def test_sanitize_file_name():
    assert sanitize_file_name("my report (final).pdf") == "my_report_final_.pdf"


class TestAttachments:

    def test_upload_stores_blob(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Files"})
        updated = task_store.add_uploads("alpha", task.id, [("notes v1.txt", b"hello", "text/plain")])

        attachment = updated.attachments[0]
        assert attachment.source == AttachmentSource.UPLOAD
        assert attachment.size == 5
        assert attachment.storage_name.endswith(".txt")

        _, blob = task_store.get_attachment("alpha", task.id, attachment.id)
        assert Path(blob).read_bytes() == b"hello"

    def test_upload_requires_files(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Files"})
        with pytest.raises(ValidationError):
            task_store.add_uploads("alpha", task.id, [])

    def test_delete_upload_removes_blob(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Files"})
        updated = task_store.add_uploads("alpha", task.id, [("a.txt", b"x", "text/plain")])
        attachment = updated.attachments[0]
        _, blob = task_store.get_attachment("alpha", task.id, attachment.id)

        after = task_store.delete_attachment("alpha", task.id, attachment.id)
        assert after.attachments == []
        assert not Path(blob).exists()

    def test_link_documents_deduplicates(self, task_store, document_store, project):
        doc = document_store.create_document({"title": "Spec", "content": "abc"})
        task = task_store.create("alpha", project.id, {"title": "Docs"})

        task_store.link_documents("alpha", task.id, [doc])
        updated = task_store.link_documents("alpha", task.id, [doc])

        assert len(updated.attachments) == 1
        assert updated.attachments[0].type == DOC_LINK_MIME
        assert updated.attachments[0].source == AttachmentSource.DOCS
        assert updated.linked_document_ids == [doc.id]

    def test_delete_doc_link_prunes_linked_ids(self, task_store, document_store, project):
        doc = document_store.create_document({"title": "Spec"})
        task = task_store.create("alpha", project.id, {"title": "Docs"})
        linked = task_store.link_documents("alpha", task.id, [doc])

        attachment, blob = task_store.get_attachment("alpha", task.id, linked.attachments[0].id)
        assert blob is None

        after = task_store.delete_attachment("alpha", task.id, attachment.id)
        assert after.linked_document_ids == []
        assert document_store.get_document(doc.id) is not None

    def test_unknown_attachment(self, task_store, project):
        task = task_store.create("alpha", project.id, {"title": "Files"})
        with pytest.raises(NotFound):
            task_store.get_attachment("alpha", task.id, "nope")
