from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import requests

from .diffing import extract_milestone_names, format_names
from .errors import (
    BacklogAPIError,
    DirectoryFetchError,
    IssueFetchError,
    MutationError,
    redact,
)
from .logging import get_logger
from .models import IssueSnapshot, Milestone, MilestoneDirectory

USER_AGENT = "milestonesuite-rest/0.2.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class BacklogRestClient:
    """Lightweight REST client for the Backlog v2 API (milestones = versions)."""

    api_key: str
    space_url: str
    project_key: str
    session: requests.Session | None = None
    timeout: float = REQUEST_TIMEOUT
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        data: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.space_url.rstrip('/')}/{path.lstrip('/')}"
        merged = dict(self._session.headers)
        if headers:
            merged.update(headers)
        try:
            response = self._session.request(
                method,
                url,
                params={"apiKey": self.api_key},
                data=data,
                headers=merged,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise BacklogAPIError(
                redact(f"Backlog API {method} {url} failed: {exc}")
            ) from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise BacklogAPIError(
                f"Backlog API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    # ---- Milestones (versions) ----------------------------------------
    def list_milestones(self) -> list[Milestone]:
        data = self._request("GET", f"/api/v2/projects/{self.project_key}/versions")
        out: list[Milestone] = []
        if isinstance(data, list):
            for entry in data:
                if isinstance(entry, dict) and "id" in entry and "name" in entry:
                    out.append(Milestone.from_payload(entry))
        return out

    def fetch_milestone_directory(self) -> MilestoneDirectory:
        logger = get_logger()
        logger.debug(f"-> fetch_milestone_directory project={self.project_key}")
        try:
            milestones = self.list_milestones()
        except BacklogAPIError as exc:
            raise DirectoryFetchError(
                f"could not load milestones for project {self.project_key}: {exc}",
                status=exc.status,
                response_text=exc.response_text,
            ) from exc
        logger.debug(f"<- fetch_milestone_directory ok ({len(milestones)} milestones)")
        return MilestoneDirectory(milestones)

    # ---- Issue operations --------------------------------------------
    def fetch_issue(self, issue_key: str) -> IssueSnapshot:
        logger = get_logger()
        logger.debug(f"-> fetch_issue {issue_key}")
        try:
            data = self._request("GET", f"/api/v2/issues/{issue_key}")
        except BacklogAPIError as exc:
            raise IssueFetchError(
                f"could not load issue {issue_key}: {exc}",
                status=exc.status,
                response_text=exc.response_text,
            ) from exc
        if not isinstance(data, dict):
            raise IssueFetchError(f"unexpected payload for issue {issue_key}")
        logger.debug(
            f"<- fetch_issue ok {issue_key} milestones="
            f"{format_names(extract_milestone_names(data))}"
        )
        return IssueSnapshot.from_payload(issue_key, data)

    def update_issue_milestones(self, issue_key: str, milestone_ids: Iterable[int]) -> None:
        ids = list(milestone_ids)
        get_logger().debug(
            f"-> update_issue_milestones {issue_key} milestoneId=[{', '.join(map(str, ids))}]"
        )
        body = urlencode([("milestoneId[]", str(mid)) for mid in ids])
        try:
            self._request(
                "PATCH",
                f"/api/v2/issues/{issue_key}",
                data=body,
                headers={"Content-Type": FORM_CONTENT_TYPE},
            )
        except BacklogAPIError as exc:
            raise MutationError(
                f"could not update milestones of {issue_key}: {exc}",
                status=exc.status,
                response_text=exc.response_text,
            ) from exc


__all__ = ["BacklogRestClient", "USER_AGENT"]
