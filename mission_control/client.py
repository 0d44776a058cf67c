# Mission Control — HTTP client
#
# Thin requests wrapper over the JSON API, used by the board sync and by
# scripts. Error responses are raised as the matching MissionControlError.

import logging
import threading
from typing import Optional, Dict, Any, List, Callable

import requests

from .errors import MissionControlError, NotFound, ValidationError, UpstreamIOError, Aborted
from .schema import Task

logger = logging.getLogger(__name__)

SEARCH_DEBOUNCE_MS = 180

STATUS_ERRORS = {
    400: ValidationError,
    404: NotFound,
}


class MissionControlClient:
    """HTTP client for the Mission Control API."""

    def __init__(self, base_url: str = "http://localhost:3000", session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = 5

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamIOError(f"{method} {path} failed: {e}") from e

        if not r.ok:
            try:
                message = r.json().get("error") or r.reason
            except ValueError:
                message = r.reason
            raise STATUS_ERRORS.get(r.status_code, UpstreamIOError)(message)
        return r.json()

    def health(self) -> bool:
        try:
            return self._request("GET", "/health").get("status") == "ok"
        except MissionControlError:
            return False

    # ── Projects & tasks ─────────────────────────────────────────────────────

    def list_projects(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/projects")

    def create_project(self, name: str, **fields) -> Dict[str, Any]:
        return self._request("POST", "/api/projects", json={"name": name, **fields})

    def list_tasks(self, project_id: str) -> List[Task]:
        raw = self._request("GET", f"/api/projects/{project_id}/tasks")
        return [Task.from_dict(t) for t in raw]

    def create_task(self, project_id: str, title: str, **fields) -> Task:
        raw = self._request("POST", f"/api/projects/{project_id}/tasks", json={"title": title, **fields})
        return Task.from_dict(raw)

    def update_task(self, project_id: str, task_id: str, updates: Dict[str, Any]) -> Task:
        raw = self._request("PUT", f"/api/projects/{project_id}/tasks/{task_id}", json=updates)
        return Task.from_dict(raw)

    def reorder_tasks(self, project_id: str, task_ids: List[str], status: str) -> List[Task]:
        raw = self._request(
            "PATCH",
            f"/api/projects/{project_id}/tasks",
            json={"reorder": True, "taskIds": list(task_ids), "status": status},
        )
        return [Task.from_dict(t) for t in raw]

    # ── Search ───────────────────────────────────────────────────────────────

    def search(self, query: str) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/search", params={"q": query}).get("results", [])


class DebouncedSearch:
    """
    Runs client.search(query) once the query has been stable for `delay_ms`.

    Every submit() supersedes the pending one. A superseded query never
    reaches the server if its timer has not fired yet; if it is already in
    flight its results are discarded (Aborted) instead of delivered.
    """

    def __init__(self, client: MissionControlClient, on_results: Callable[[List[Dict[str, Any]]], None],
                 delay_ms: int = SEARCH_DEBOUNCE_MS):
        self.client = client
        self.on_results = on_results
        self.delay = delay_ms / 1000.0
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    def submit(self, query: str) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
            if not query.strip():
                self._timer = None
                self.on_results([])
                return
            self._timer = threading.Timer(self.delay, self._run, args=(query, generation))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _check_current(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                raise Aborted(f"search generation {generation} superseded")

    def _run(self, query: str, generation: int) -> None:
        try:
            self._check_current(generation)
            results = self.client.search(query)
            self._check_current(generation)
        except Aborted as e:
            logger.debug(str(e))
            return
        except MissionControlError as e:
            logger.error(f"Search failed for {query!r}: {e}")
            return
        self.on_results(results)
