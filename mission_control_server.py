#!/usr/bin/env python3
"""
Mission Control Server
----------------------
JSON API for the Mission Control dashboard, backed by flat files under the
data directory (see mission_control/ for the layout).

Usage:
    python mission_control_server.py
    python mission_control_server.py --port 3000 --data-dir ~/mission-control-data

API:
    /api/projects[/<p>]                          projects
    /api/projects/<p>/tasks[/<t>]                kanban tasks (PATCH = reorder)
    /api/projects/<p>/tasks/<t>/comments         comments
    /api/projects/<p>/tasks/<t>/attachments      uploads and document links
    /api/documents, /api/folders                 docs
    /api/members[/<m>[/activity]]                crew
    /api/scheduled                               weekly schedule
    /api/memory[/search|/favorites]              bot memory (read-only)
    /api/search?q=                               global search
    /health
"""

import argparse
import logging
import os
import sys

from flask import Flask, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from mission_control.config import Config
from mission_control.errors import MissionControlError, ValidationError, NotFound, UpstreamIOError
from mission_control.projects import ProjectStore
from mission_control.tasks import TaskStore
from mission_control.documents import DocumentStore
from mission_control.members import MemberStore, member_activity
from mission_control.scheduled import ScheduledStore
from mission_control.memory import MemoryStore
from mission_control.search import search, load_corpus, filter_tasks

logger = logging.getLogger("mission_control.server")


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [mission-control] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _body() -> dict:
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def create_app(config: Config = None) -> Flask:
    config = config or Config.load()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_mb * 1024 * 1024
    app.config["MC_CONFIG"] = config

    projects = ProjectStore(config.data_dir)
    tasks = TaskStore(config.data_dir)
    documents = DocumentStore(config.data_dir)
    members = MemberStore(config.data_dir)
    scheduled = ScheduledStore(config.data_dir)
    memory = MemoryStore(config.data_dir)

    # ── Errors ───────────────────────────────────────────────────────────────

    @app.errorhandler(MissionControlError)
    def handle_mission_control_error(e):
        if isinstance(e, UpstreamIOError):
            logger.exception(f"{request.method} {request.path}: {e}")
            return jsonify({"error": "Storage error"}), 500
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({"error": f"Upload exceeds {config.max_upload_mb} MB"}), 413

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Internal server error"}), 500

    # ── Projects ─────────────────────────────────────────────────────────────

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        return jsonify([p.to_dict() for p in projects.list_projects()])

    @app.route("/api/projects", methods=["POST"])
    def api_create_project():
        project = projects.create(_body())
        members.sync_project(project.id, project.member_ids)
        return jsonify(project.to_dict()), 201

    @app.route("/api/projects/<project_id>", methods=["GET"])
    def api_project(project_id):
        return jsonify(projects.resolve(project_id).to_dict())

    @app.route("/api/projects/<project_id>", methods=["PUT"])
    def api_update_project(project_id):
        data = _body()
        project = projects.update(project_id, data)
        if "memberIds" in data:
            members.sync_project(project.id, project.member_ids)
        return jsonify(project.to_dict())

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    def api_delete_project(project_id):
        project = projects.delete(project_id)
        members.sync_project(project.id, [])
        return jsonify({"success": True})

    # ── Tasks ────────────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/tasks", methods=["GET"])
    def api_tasks(project_id):
        project = projects.resolve(project_id)
        result = tasks.list_tasks(project.slug)
        query = request.args.get("q", "")
        if query.strip():
            result = filter_tasks(result, query)
        return jsonify([t.to_dict() for t in result])

    @app.route("/api/projects/<project_id>/tasks", methods=["POST"])
    def api_create_task(project_id):
        project = projects.resolve(project_id)
        task = tasks.create(project.slug, project.id, _body())
        return jsonify(task.to_dict()), 201

    @app.route("/api/projects/<project_id>/tasks", methods=["PATCH"])
    def api_reorder_tasks(project_id):
        project = projects.resolve(project_id)
        data = _body()
        if not data.get("reorder"):
            raise ValidationError("Invalid request")
        ordered = tasks.reorder(project.slug, data.get("taskIds") or [], data.get("status"))
        return jsonify([t.to_dict() for t in ordered])

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["GET"])
    def api_task(project_id, task_id):
        project = projects.resolve(project_id)
        return jsonify(tasks.require(project.slug, task_id).to_dict())

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["PUT"])
    def api_update_task(project_id, task_id):
        project = projects.resolve(project_id)
        return jsonify(tasks.update(project.slug, task_id, _body()).to_dict())

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(project_id, task_id):
        project = projects.resolve(project_id)
        tasks.delete(project.slug, task_id)
        return jsonify({"success": True})

    @app.route("/api/projects/<project_id>/tasks/<task_id>/comments", methods=["POST"])
    def api_add_comment(project_id, task_id):
        project = projects.resolve(project_id)
        task = tasks.add_comment(project.slug, task_id, _body())
        return jsonify(task.to_dict()), 201

    # ── Attachments ──────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/tasks/<task_id>/attachments", methods=["POST"])
    def api_upload_attachments(project_id, task_id):
        project = projects.resolve(project_id)
        files = [
            (f.filename or "attachment", f.read(), f.mimetype)
            for f in request.files.getlist("files")
        ]
        task = tasks.add_uploads(project.slug, task_id, files)
        return jsonify(task.to_dict()), 201

    @app.route("/api/projects/<project_id>/tasks/<task_id>/attachments/docs", methods=["POST"])
    def api_link_documents(project_id, task_id):
        project = projects.resolve(project_id)
        doc_ids = _body().get("documentIds")
        if not isinstance(doc_ids, list) or not doc_ids:
            raise ValidationError("documentIds must be a non-empty list")
        docs = [documents.require_document(doc_id) for doc_id in doc_ids]
        task = tasks.link_documents(project.slug, task_id, docs)
        return jsonify(task.to_dict()), 201

    @app.route("/api/projects/<project_id>/tasks/<task_id>/attachments/<attachment_id>", methods=["GET"])
    def api_attachment(project_id, task_id, attachment_id):
        project = projects.resolve(project_id)
        attachment, blob = tasks.get_attachment(project.slug, task_id, attachment_id)
        if blob is None:
            return jsonify(documents.require_document(attachment.document_id).to_dict())
        if not blob.is_file():
            raise NotFound("Attachment file missing")
        return send_file(
            blob,
            mimetype=attachment.type,
            as_attachment=True,
            download_name=attachment.name,
        )

    @app.route("/api/projects/<project_id>/tasks/<task_id>/attachments/<attachment_id>", methods=["DELETE"])
    def api_delete_attachment(project_id, task_id, attachment_id):
        project = projects.resolve(project_id)
        task = tasks.delete_attachment(project.slug, task_id, attachment_id)
        return jsonify(task.to_dict())

    # ── Documents & folders ──────────────────────────────────────────────────

    @app.route("/api/documents", methods=["GET"])
    def api_documents():
        folder_id = request.args.get("folderId")
        if folder_id is None:
            docs = documents.list_documents()
        else:
            docs = documents.list_by_folder(None if folder_id in ("", "root") else folder_id)
        return jsonify([d.to_dict() for d in docs])

    @app.route("/api/documents", methods=["POST"])
    def api_create_document():
        return jsonify(documents.create_document(_body()).to_dict()), 201

    @app.route("/api/documents/<doc_id>", methods=["GET"])
    def api_document(doc_id):
        return jsonify(documents.require_document(doc_id).to_dict())

    @app.route("/api/documents/<doc_id>", methods=["PUT"])
    def api_update_document(doc_id):
        return jsonify(documents.update_document(doc_id, _body()).to_dict())

    @app.route("/api/documents/<doc_id>", methods=["DELETE"])
    def api_delete_document(doc_id):
        documents.delete_document(doc_id)
        return jsonify({"success": True})

    @app.route("/api/folders", methods=["GET"])
    def api_folders():
        index = documents.load_index()
        return jsonify(index.to_dict())

    @app.route("/api/folders", methods=["POST"])
    def api_create_folder():
        return jsonify(documents.create_folder(_body()).to_dict()), 201

    @app.route("/api/folders/<folder_id>", methods=["GET"])
    def api_folder(folder_id):
        folder = documents.get_folder(folder_id)
        if not folder:
            raise NotFound("Folder not found")
        return jsonify(folder.to_dict())

    @app.route("/api/folders/<folder_id>", methods=["PUT"])
    def api_update_folder(folder_id):
        return jsonify(documents.update_folder(folder_id, _body()).to_dict())

    @app.route("/api/folders/<folder_id>", methods=["DELETE"])
    def api_delete_folder(folder_id):
        removed = documents.delete_folder(folder_id)
        return jsonify({"success": True, "deletedFolderIds": removed})

    # ── Crew ─────────────────────────────────────────────────────────────────

    @app.route("/api/members", methods=["GET"])
    def api_members():
        return jsonify([m.to_dict() for m in members.list_members()])

    @app.route("/api/members", methods=["POST"])
    def api_create_member():
        return jsonify(members.create(_body()).to_dict()), 201

    @app.route("/api/members/<member_id>", methods=["GET"])
    def api_member(member_id):
        return jsonify(members.require(member_id).to_dict())

    @app.route("/api/members/<member_id>", methods=["PUT"])
    def api_update_member(member_id):
        return jsonify(members.update(member_id, _body()).to_dict())

    @app.route("/api/members/<member_id>", methods=["DELETE"])
    def api_delete_member(member_id):
        members.delete(member_id)
        return jsonify({"success": True})

    @app.route("/api/members/<member_id>/activity", methods=["GET"])
    def api_member_activity(member_id):
        members.require(member_id)
        return jsonify(member_activity(member_id, projects, tasks, scheduled))

    # ── Schedule ─────────────────────────────────────────────────────────────

    @app.route("/api/scheduled", methods=["GET"])
    def api_scheduled():
        return jsonify([t.to_dict() for t in scheduled.list_tasks()])

    @app.route("/api/scheduled", methods=["POST"])
    def api_create_scheduled():
        return jsonify(scheduled.create(_body()).to_dict()), 201

    @app.route("/api/scheduled/<task_id>", methods=["PUT"])
    def api_update_scheduled(task_id):
        return jsonify(scheduled.update(task_id, _body()).to_dict())

    @app.route("/api/scheduled/<task_id>", methods=["DELETE"])
    def api_delete_scheduled(task_id):
        scheduled.delete(task_id)
        return jsonify({"success": True})

    # ── Memory ───────────────────────────────────────────────────────────────

    @app.route("/api/memory", methods=["GET"])
    def api_memory():
        date = request.args.get("date")
        if date:
            conversation = memory.get_conversation(date)
            if conversation is None:
                raise NotFound("Conversation not found")
            return jsonify(conversation.to_dict())
        return jsonify({"dates": memory.available_dates()})

    @app.route("/api/memory/search", methods=["GET"])
    def api_memory_search():
        query = request.args.get("q", "").strip()
        if not query:
            return jsonify({"results": []})
        return jsonify({"results": memory.search_conversations(query)})

    @app.route("/api/memory/favorites", methods=["GET"])
    def api_memory_favorites():
        return jsonify({"favorites": memory.favorites()})

    @app.route("/api/memory/favorites", methods=["POST"])
    def api_toggle_favorite():
        return jsonify({"favorites": memory.toggle_favorite(_body().get("date"))})

    # ── Search ───────────────────────────────────────────────────────────────

    @app.route("/api/search", methods=["GET"])
    def api_search():
        query = request.args.get("q", "")
        results = search(query, lambda: load_corpus(projects, tasks, documents, members, memory))
        return jsonify({"results": [r.to_dict() for r in results]})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "dataDir": config.data_dir})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Mission Control Server")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--data-dir", help="Storage root (overrides MC_DATA_DIR and config.yaml)")
    parser.add_argument("--config", help="Path to config.yaml")
    args = parser.parse_args()

    if args.data_dir:
        os.environ["MC_DATA_DIR"] = args.data_dir

    config = Config.load(args.config)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    setup_logging(config.log_level)
    app = create_app(config)

    print(f"""
╔═══════════════════════════════════════╗
║  Mission Control Server               ║
╠═══════════════════════════════════════╣
║  URL:  http://{config.host}:{config.port:<20}║
║  Data: {config.data_dir:<31}║
╚═══════════════════════════════════════╝
""")

    app.run(host=config.host, port=config.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
