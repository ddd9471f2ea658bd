"""
site_deploy.github — Pull request comments for preview deployments.

Each PR carries at most one deployment comment, recognised by its first line
(the marker). A new preview deployment rewrites that comment in place; tearing the
preview down deletes it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import requests

from site_deploy.exceptions import GitHubError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30

_TABLE_HEADINGS = ("", "ResourceType", "LogicalResourceId", "Action", "Replacement")


def comment_marker(pr_number: int) -> str:
    return f"AWS Stack Change (ID:{pr_number})"


def preview_url(branch_id: str, preview_url_host: str) -> str:
    return f"https://{branch_id}.{preview_url_host}"


def change_set_table(changes: Iterable[dict[str, Any]]) -> str:
    """Render CloudFormation change-set entries as a markdown table ('' when empty)."""
    rows = []
    for change in changes:
        resource = change.get("ResourceChange", {})
        rows.append(
            (
                "✅",
                str(resource.get("ResourceType")),
                str(resource.get("LogicalResourceId")),
                str(resource.get("Action")),
                str(resource.get("Replacement")),
            )
        )
    if not rows:
        return ""
    lines = [
        "| " + " | ".join(_TABLE_HEADINGS) + " |",
        "| " + " | ".join(":--" for _ in _TABLE_HEADINGS) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)


def preview_comment_body(
    *,
    pr_number: int,
    url: str,
    changes: list[dict[str, Any]] | None,
) -> str:
    """Comment body: marker line, optional stack changes, preview link.

    changes=None means no change set was computed, so the stack section is omitted.
    """
    sections = [comment_marker(pr_number)]
    if changes is not None:
        if changes:
            sections.append(
                "The following Stack changes are proposed:\n\n" + change_set_table(changes)
            )
        else:
            sections.append("(No Stack changes)")
    sections.append(f"🎉 Preview site deployed to: [{url}]({url})")
    return "\n\n".join(sections) + "\n"


class PullRequestComments:
    """Issue-comment endpoints of one pull request."""

    def __init__(
        self,
        repository: str,
        pr_number: int,
        token: str,
        *,
        session: Any = None,
        api_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if "/" not in repository:
            raise ValueError(f"repository must be 'owner/name', got {repository!r}")
        self.repository = repository
        self.pr_number = pr_number
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session: Any = session or requests.Session()
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def _comments_url(self) -> str:
        return f"{self._api_url}/repos/{self.repository}/issues/{self.pr_number}/comments"

    def _comment_url(self, comment_id: int) -> str:
        return f"{self._api_url}/repos/{self.repository}/issues/comments/{comment_id}"

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = self._session.request(
            method, url, headers=self._headers, timeout=self._timeout, **kwargs
        )
        if not 200 <= response.status_code < 300:
            raise GitHubError(
                message=f"GitHub {method} {url} failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return response

    def list_all(self) -> list[dict[str, Any]]:
        comments: list[dict[str, Any]] = []
        url: str | None = self._comments_url
        params: dict[str, Any] | None = {"per_page": 100}
        while url:
            response = self._request("GET", url, params=params)
            comments.extend(response.json())
            url = response.links.get("next", {}).get("url")
            params = None  # the next link already carries the query string
        return comments

    def create(self, body: str) -> dict[str, Any]:
        return self._request("POST", self._comments_url, json={"body": body}).json()

    def update(self, comment_id: int, body: str) -> dict[str, Any]:
        return self._request("PATCH", self._comment_url(comment_id), json={"body": body}).json()

    def delete(self, comment_id: int) -> None:
        self._request("DELETE", self._comment_url(comment_id))

    def find_by_marker(self, marker: str) -> dict[str, Any] | None:
        for comment in self.list_all():
            if str(comment.get("body") or "").startswith(marker):
                return comment
        return None


def publish_preview_comment(
    comments: PullRequestComments,
    *,
    url: str,
    changes: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Write the PR's deployment comment, editing the existing one in place when present."""
    body = preview_comment_body(pr_number=comments.pr_number, url=url, changes=changes)
    existing = comments.find_by_marker(comment_marker(comments.pr_number))
    if existing is not None:
        updated = comments.update(int(existing["id"]), body)
        logger.info("Updated preview comment on %s#%d", comments.repository, comments.pr_number)
        return updated
    created = comments.create(body)
    logger.info("Posted preview comment on %s#%d", comments.repository, comments.pr_number)
    return created


def delete_preview_comment(comments: PullRequestComments) -> bool:
    """Delete the PR's deployment comment. Returns whether one existed."""
    existing = comments.find_by_marker(comment_marker(comments.pr_number))
    if existing is None:
        return False
    comments.delete(int(existing["id"]))
    logger.info("Deleted preview comment on %s#%d", comments.repository, comments.pr_number)
    return True
