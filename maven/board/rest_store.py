"""
Task store backed by a hosted database's REST interface (PostgREST dialect).

    GET   {base}/rest/v1/tasks?select=...&order=created_at.asc
    GET   {base}/rest/v1/tasks?id=eq.<id>
    PATCH {base}/rest/v1/tasks?id=eq.<id>      body: {"status": ...}
    POST  {base}/rest/v1/tasks                 body: task row
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .schema import Task, TaskStatus
from .store import TaskStoreError

logger = logging.getLogger(__name__)

TASK_SELECT = "id,title,description,status,created_at,assignee:profiles(full_name)"


def _error_message(response: requests.Response) -> str:
    """Pull the service's error message out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "msg"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class RestTaskStore:
    """TaskStore over HTTP. Every failure surfaces as TaskStoreError."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def tasks_url(self) -> str:
        return f"{self.base_url}/rest/v1/tasks"

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _request(self, method: str, params: Dict[str, str] = None, json: Any = None) -> Any:
        try:
            r = self.session.request(
                method,
                self.tasks_url,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {self.tasks_url} failed: {e}")
            raise TaskStoreError(str(e)) from e
        if not r.ok:
            message = _error_message(r)
            logger.warning(f"{method} {self.tasks_url} -> {r.status_code}: {message}")
            raise TaskStoreError(message)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise TaskStoreError("Invalid JSON from task service") from e

    def list_tasks(self) -> List[Task]:
        rows = self._request("GET", params={"select": TASK_SELECT, "order": "created_at.asc"})
        return [Task.from_dict(r) for r in rows or []]

    def get_task(self, task_id: str) -> Optional[Task]:
        rows = self._request("GET", params={"select": TASK_SELECT, "id": f"eq.{task_id}"})
        return Task.from_dict(rows[0]) if rows else None

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        status: TaskStatus = TaskStatus.PENDING,
        assignee_id: Optional[str] = None,
    ) -> Task:
        if not title or not title.strip():
            raise TaskStoreError("title is required")
        row = {"title": title.strip(), "description": description, "status": status.value}
        if assignee_id:
            row["assignee_id"] = assignee_id
        rows = self._request("POST", json=row)
        if not rows:
            raise TaskStoreError("Task service returned no row")
        return Task.from_dict(rows[0])

    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        rows = self._request("PATCH", params={"id": f"eq.{task_id}"}, json={"status": status.value})
        if rows == []:
            raise TaskStoreError(f"Task {task_id} not found")
