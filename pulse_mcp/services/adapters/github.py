"""
GitHub Integration

Implements Integration for the GitHub REST API with httpx.
"""

import base64
from typing import Any, Dict, List, Optional
import logging

import httpx

from ...config import GITHUB_API_URL, GITHUB_API_VERSION, HTTP_TIMEOUT
from ..interface import Integration, IntegrationError, ToolDescriptor, object_schema

logger = logging.getLogger(__name__)

SEARCH_ENDPOINTS = {
    "repositories": "/search/repositories",
    "code": "/search/code",
    "issues": "/search/issues",
    "users": "/search/users",
}

STATES = ["open", "closed", "all"]


def _compact(params: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset query parameters."""
    return {k: v for k, v in params.items() if v is not None}


def _login(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return user.get("login") if user else None


class GitHubIntegration(Integration):
    """GitHub source hosting integration."""

    integration_type = "github"

    def __init__(self, secrets, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(secrets)
        self._transport = transport

    async def initialize(self) -> bool:
        token = self.secrets.get_source_hosting_token()
        if not token:
            logger.info("⚪ GitHub token not available")
            return False

        if self._client is not None:
            await self._client.aclose()

        self._client = httpx.AsyncClient(
            base_url=GITHUB_API_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=HTTP_TIMEOUT,
            transport=self._transport,
        )
        logger.info("✅ Connected to GitHub")
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        await super().close()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        client = self._require_client(operation)
        try:
            return await client.request(
                method,
                path,
                params=_compact(params) if params else None,
                json=_compact(json) if json else None,
            )
        except httpx.HTTPError as e:
            raise IntegrationError(operation, str(e)) from e

    async def _call(self, operation: str, method: str, path: str, **kwargs) -> Any:
        response = await self._request(operation, method, path, **kwargs)
        if response.is_error:
            raise IntegrationError(operation, _error_message(response))
        return _json_body(operation, response)

    # =========================================================================
    # REPOSITORIES
    # =========================================================================

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        """Get repository metadata."""
        data = await self._call("github_get_repo", "GET", f"/repos/{owner}/{repo}")
        return {
            "name": data.get("name"),
            "full_name": data.get("full_name"),
            "description": data.get("description"),
            "private": data.get("private"),
            "default_branch": data.get("default_branch"),
            "language": data.get("language"),
            "stars": data.get("stargazers_count"),
            "forks": data.get("forks_count"),
            "open_issues": data.get("open_issues_count"),
            "created_at": data.get("created_at"),
            "updated_at": data.get("updated_at"),
            "url": data.get("html_url"),
        }

    async def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Get a file's decoded content.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path within the repository
            ref: Branch, tag, or commit (default: repository default branch)

        Returns:
            Dict with name, path, content (UTF-8 text), size, sha and url

        Raises:
            IntegrationError: If the path doesn't exist or is not a file
        """
        operation = "github_get_file"
        response = await self._request(
            operation, "GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}
        )
        if response.status_code == 404:
            raise IntegrationError(operation, f"File not found: {path}")
        if response.is_error:
            raise IntegrationError(operation, _error_message(response))

        data = _json_body(operation, response)
        if not isinstance(data, dict) or data.get("type") != "file" or "content" not in data:
            raise IntegrationError(operation, f"Path is not a file: {path}")

        try:
            content = base64.b64decode(data["content"]).decode("utf-8")
        except ValueError as e:
            raise IntegrationError(operation, f"{path} is not UTF-8 text: {e}") from e

        return {
            "name": data.get("name"),
            "path": data.get("path"),
            "content": content,
            "size": data.get("size"),
            "sha": data.get("sha"),
            "url": data.get("html_url"),
        }

    # =========================================================================
    # ISSUES
    # =========================================================================

    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        labels: Optional[List[str]] = None,
        assignee: Optional[str] = None,
        creator: Optional[str] = None,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        """List issues in a repository."""
        data = await self._call(
            "github_list_issues",
            "GET",
            f"/repos/{owner}/{repo}/issues",
            params={
                "state": state or "open",
                "labels": ",".join(labels) if labels else None,
                "assignee": assignee,
                "creator": creator,
                "per_page": per_page or 30,
            },
        )
        return [
            {
                "number": issue.get("number"),
                "title": issue.get("title"),
                "state": issue.get("state"),
                "body": issue.get("body"),
                "user": _login(issue.get("user")),
                "labels": [
                    label if isinstance(label, str) else label.get("name")
                    for label in issue.get("labels") or []
                ],
                "assignees": [_login(a) for a in issue.get("assignees") or []],
                "created_at": issue.get("created_at"),
                "updated_at": issue.get("updated_at"),
                "url": issue.get("html_url"),
            }
            for issue in data
        ]

    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: Optional[str] = None,
        labels: Optional[List[str]] = None,
        assignees: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Create an issue."""
        data = await self._call(
            "github_create_issue",
            "POST",
            f"/repos/{owner}/{repo}/issues",
            json={"title": title, "body": body, "labels": labels, "assignees": assignees},
        )
        return {
            "number": data.get("number"),
            "title": data.get("title"),
            "state": data.get("state"),
            "url": data.get("html_url"),
        }

    # =========================================================================
    # PULL REQUESTS
    # =========================================================================

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        head: Optional[str] = None,
        base: Optional[str] = None,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        """List pull requests in a repository."""
        data = await self._call(
            "github_list_prs",
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"state": state or "open", "head": head, "base": base, "per_page": per_page or 30},
        )
        return [
            {
                "number": pr.get("number"),
                "title": pr.get("title"),
                "state": pr.get("state"),
                "body": pr.get("body"),
                "user": _login(pr.get("user")),
                "head": (pr.get("head") or {}).get("ref"),
                "base": (pr.get("base") or {}).get("ref"),
                "draft": pr.get("draft"),
                "merged": pr.get("merged_at") is not None,
                "created_at": pr.get("created_at"),
                "updated_at": pr.get("updated_at"),
                "url": pr.get("html_url"),
            }
            for pr in data
        ]

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: Optional[str] = None,
        draft: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Open a pull request from head into base."""
        data = await self._call(
            "github_create_pr",
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body, "draft": draft},
        )
        return {
            "number": data.get("number"),
            "title": data.get("title"),
            "state": data.get("state"),
            "url": data.get("html_url"),
        }

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(self, query: str, type: str, per_page: int = 30) -> List[Dict[str, Any]]:
        """Search repositories, code, issues or users; returns the raw items."""
        operation = "github_search"
        endpoint = SEARCH_ENDPOINTS.get(type)
        if endpoint is None:
            raise IntegrationError(
                operation, f"Unknown search type {type!r}, expected one of {', '.join(SEARCH_ENDPOINTS)}"
            )
        data = await self._call(operation, "GET", endpoint, params={"q": query, "per_page": per_page or 30})
        return data.get("items", [])

    def get_handlers(self):
        return {
            "github_get_repo": self.get_repository,
            "github_list_issues": self.list_issues,
            "github_create_issue": self.create_issue,
            "github_list_prs": self.list_pull_requests,
            "github_create_pr": self.create_pull_request,
            "github_get_file": self.get_file_content,
            "github_search": self.search,
        }

    def get_tools(self) -> List[ToolDescriptor]:
        owner = {"type": "string", "description": "Repository owner"}
        repo = {"type": "string", "description": "Repository name"}
        per_page = {"type": "integer", "description": "Results per page"}
        string_list = {"type": "array", "items": {"type": "string"}}
        return [
            ToolDescriptor(
                name="github_get_repo",
                description="Get information about a GitHub repository",
                input_schema=object_schema({"owner": owner, "repo": repo}, required=["owner", "repo"]),
            ),
            ToolDescriptor(
                name="github_list_issues",
                description="List issues in a GitHub repository",
                input_schema=object_schema(
                    {
                        "owner": owner,
                        "repo": repo,
                        "state": {"type": "string", "enum": STATES, "description": "Issue state"},
                        "labels": {**string_list, "description": "Filter by labels"},
                        "assignee": {"type": "string", "description": "Filter by assignee"},
                        "creator": {"type": "string", "description": "Filter by creator"},
                        "per_page": per_page,
                    },
                    required=["owner", "repo"],
                ),
            ),
            ToolDescriptor(
                name="github_create_issue",
                description="Create a new issue in a GitHub repository",
                input_schema=object_schema(
                    {
                        "owner": owner,
                        "repo": repo,
                        "title": {"type": "string", "description": "Issue title"},
                        "body": {"type": "string", "description": "Issue body"},
                        "labels": {**string_list, "description": "Labels to apply"},
                        "assignees": {**string_list, "description": "Users to assign"},
                    },
                    required=["owner", "repo", "title"],
                ),
            ),
            ToolDescriptor(
                name="github_list_prs",
                description="List pull requests in a GitHub repository",
                input_schema=object_schema(
                    {
                        "owner": owner,
                        "repo": repo,
                        "state": {"type": "string", "enum": STATES, "description": "PR state"},
                        "head": {"type": "string", "description": "Filter by head branch"},
                        "base": {"type": "string", "description": "Filter by base branch"},
                        "per_page": per_page,
                    },
                    required=["owner", "repo"],
                ),
            ),
            ToolDescriptor(
                name="github_create_pr",
                description="Create a new pull request in a GitHub repository",
                input_schema=object_schema(
                    {
                        "owner": owner,
                        "repo": repo,
                        "title": {"type": "string", "description": "PR title"},
                        "body": {"type": "string", "description": "PR body"},
                        "head": {"type": "string", "description": "Branch containing changes"},
                        "base": {"type": "string", "description": "Branch to merge into"},
                        "draft": {"type": "boolean", "description": "Create as draft PR"},
                    },
                    required=["owner", "repo", "title", "head", "base"],
                ),
            ),
            ToolDescriptor(
                name="github_get_file",
                description="Get file content from a GitHub repository",
                input_schema=object_schema(
                    {
                        "owner": owner,
                        "repo": repo,
                        "path": {"type": "string", "description": "File path"},
                        "ref": {"type": "string", "description": "Branch, tag, or commit"},
                    },
                    required=["owner", "repo", "path"],
                ),
            ),
            ToolDescriptor(
                name="github_search",
                description="Search GitHub for repositories, code, issues, or users",
                input_schema=object_schema(
                    {
                        "query": {"type": "string", "description": "Search query"},
                        "type": {
                            "type": "string",
                            "enum": list(SEARCH_ENDPOINTS),
                            "description": "Type of search",
                        },
                        "per_page": per_page,
                    },
                    required=["query", "type"],
                ),
            ),
        ]


def _json_body(operation: str, response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise IntegrationError(operation, f"Invalid JSON response (HTTP {response.status_code}): {e}") from e


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"{body['message']} (HTTP {response.status_code})"
    return response.text or f"HTTP {response.status_code}"
