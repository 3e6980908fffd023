"""GitHub Projects v2 GraphQL client, plus the REST calls used for labels."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from urllib.parse import quote

import httpx

from .models import (
    FieldValue,
    Label,
    Project,
    ProjectField,
    ProjectItem,
    ProjectView,
    RepoInfo,
    StatusField,
    StatusOption,
)

logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
GITHUB_REST_URL = "https://api.github.com"

MAX_FETCH_WORKERS = 4

ITEMS_QUERY = """
query($projectId: ID!, $cursor: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          fieldValues(first: 20) {
            nodes {
              __typename
              ... on ProjectV2ItemFieldSingleSelectValue {
                name
                field { ... on ProjectV2SingleSelectField { name } }
              }
              ... on ProjectV2ItemFieldTextValue {
                text
                field { ... on ProjectV2Field { name } }
              }
              ... on ProjectV2ItemFieldNumberValue {
                number
                field { ... on ProjectV2Field { name } }
              }
              ... on ProjectV2ItemFieldDateValue {
                date
                field { ... on ProjectV2Field { name } }
              }
              ... on ProjectV2ItemFieldIterationValue {
                title
                field { ... on ProjectV2IterationField { name } }
              }
            }
          }
          content {
            __typename
            ... on Issue {
              title
              number
              url
              state
              issueType { name }
              assignees(first: 10) { nodes { login } }
              labels(first: 20) { nodes { name color } }
              repository { name nameWithOwner }
            }
            ... on PullRequest {
              title
              number
              url
              state
              assignees(first: 10) { nodes { login } }
              labels(first: 20) { nodes { name color } }
              repository { name nameWithOwner }
            }
            ... on DraftIssue {
              title
              assignees(first: 10) { nodes { login } }
            }
          }
        }
      }
    }
  }
}
"""

CONTENT_TYPES = {"Issue": "issue", "PullRequest": "pull_request", "DraftIssue": "draft"}


class GitHubAPIError(RuntimeError):
    """GitHub answered, but with errors."""


class GitHubProjectClient:
    """Client for GitHub Projects v2 (GraphQL) and issue labels (REST)."""

    def __init__(self, token: str, transport: httpx.BaseTransport | None = None) -> None:
        self.token = token
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/vnd.github+json",
            },
            timeout=30.0,
            transport=transport,
        )
        self._fields: dict[str, dict[str, ProjectField]] = {}
        self._status_fields: dict[str, StatusField | None] = {}

    def _graphql(self, query: str, variables: dict | None = None) -> dict:
        """Execute a GraphQL query and return the response data."""
        payload: dict = {"query": query}
        if variables:
            payload["variables"] = variables
        resp = self._client.post(GITHUB_GRAPHQL_URL, json=payload)
        resp.raise_for_status()
        body = resp.json()
        if "errors" in body:
            raise GitHubAPIError(f"GraphQL errors: {json.dumps(body['errors'], indent=2)}")
        return body.get("data", {})

    def _rest(self, method: str, path: str, **kwargs) -> httpx.Response:
        return self._client.request(method, f"{GITHUB_REST_URL}{path}", **kwargs)

    # ------------------------------------------------------------------
    # Identity and project discovery
    # ------------------------------------------------------------------

    def get_viewer_login(self) -> str:
        data = self._graphql("query { viewer { login } }")
        return data["viewer"]["login"]

    def get_projects(self, repo: RepoInfo) -> list[Project]:
        """Projects linked to a repository."""
        query = """
        query($owner: String!, $name: String!) {
          repository(owner: $owner, name: $name) {
            projectsV2(first: 20) {
              nodes { id title number url }
            }
          }
        }
        """
        data = self._graphql(query, {"owner": repo.owner, "name": repo.name})
        repository = data.get("repository")
        if repository is None:
            raise GitHubAPIError(f"Repository not found: {repo.full_name}")
        return [
            Project(id=n["id"], title=n["title"], number=n.get("number"), url=n.get("url", ""))
            for n in repository["projectsV2"]["nodes"]
            if n
        ]

    def get_fields(self, project_id: str) -> dict[str, ProjectField]:
        """Fetch all fields for a project. Returns {name: ProjectField}."""
        if project_id in self._fields:
            return self._fields[project_id]

        query = """
        query($projectId: ID!) {
          node(id: $projectId) {
            ... on ProjectV2 {
              fields(first: 50) {
                nodes {
                  ... on ProjectV2Field { id name dataType }
                  ... on ProjectV2SingleSelectField {
                    id
                    name
                    dataType
                    options { id name }
                  }
                  ... on ProjectV2IterationField { id name dataType }
                }
              }
            }
          }
        }
        """
        data = self._graphql(query, {"projectId": project_id})
        fields: dict[str, ProjectField] = {}
        for node in data["node"]["fields"]["nodes"]:
            if not node or not node.get("name"):
                continue
            # Option order is the board order; dicts keep insertion order.
            options = {opt["name"]: opt["id"] for opt in node.get("options") or []}
            fields[node["name"]] = ProjectField(
                id=node["id"],
                name=node["name"],
                data_type=node.get("dataType", ""),
                options=options,
            )
        self._fields[project_id] = fields
        return fields

    def get_status_field(self, project_id: str) -> StatusField | None:
        """The Status field with its options in board order, if the project has one."""
        if project_id in self._status_fields:
            return self._status_fields[project_id]
        field = self.get_fields(project_id).get("Status")
        status = None
        if field is not None and field.options:
            status = StatusField(
                field_id=field.id,
                options=[StatusOption(id=oid, name=name) for name, oid in field.options.items()],
            )
        self._status_fields[project_id] = status
        return status

    def get_project_views(self, project_id: str) -> list[ProjectView]:
        query = """
        query($projectId: ID!) {
          node(id: $projectId) {
            ... on ProjectV2 {
              views(first: 30) { nodes { name number filter } }
            }
          }
        }
        """
        data = self._graphql(query, {"projectId": project_id})
        return [
            ProjectView(name=n["name"], number=n.get("number"), filter=n.get("filter") or "")
            for n in data["node"]["views"]["nodes"]
            if n
        ]

    # ------------------------------------------------------------------
    # Read items
    # ------------------------------------------------------------------

    def list_items(self, project_id: str, project_title: str = "") -> list[ProjectItem]:
        """List all items on the project board (paginated)."""
        status_field = self.get_status_field(project_id)

        items: list[ProjectItem] = []
        cursor: str | None = None
        has_next = True

        while has_next:
            data = self._graphql(ITEMS_QUERY, {"projectId": project_id, "cursor": cursor})
            page = data["node"]["items"]
            has_next = page["pageInfo"]["hasNextPage"]
            cursor = page["pageInfo"]["endCursor"]

            for node in page["nodes"]:
                if not node or not node.get("content"):
                    continue
                items.append(
                    self._parse_item_node(node, project_id, project_title, status_field)
                )

        return items

    def _parse_item_node(
        self,
        node: dict,
        project_id: str,
        project_title: str,
        status_field: StatusField | None,
    ) -> ProjectItem:
        content = node.get("content") or {}
        field_values = _parse_field_values((node.get("fieldValues") or {}).get("nodes") or [])

        status_value = field_values.get("Status")
        status = status_value.as_text() if status_value else None
        repository = content.get("repository") or {}

        return ProjectItem(
            id=node["id"],
            title=content.get("title") or "Untitled",
            number=content.get("number"),
            type=CONTENT_TYPES.get(content.get("__typename", ""), "draft"),
            issue_type=(content.get("issueType") or {}).get("name"),
            status=status,
            status_index=status_field.index_of(status) if status_field else None,
            state=content.get("state"),
            assignees=tuple(
                a["login"] for a in (content.get("assignees") or {}).get("nodes") or [] if a
            ),
            labels=tuple(
                Label(name=lb["name"], color=lb.get("color") or "ededed")
                for lb in (content.get("labels") or {}).get("nodes") or []
                if lb and lb.get("name")
            ),
            field_values=field_values,
            project_id=project_id,
            project_title=project_title,
            repository=repository.get("name"),
            repository_full_name=repository.get("nameWithOwner"),
            url=content.get("url"),
        )

    def fetch_items_for_projects(self, projects: list[Project]) -> list[ProjectItem]:
        """Fetch items for several projects concurrently, keeping project order."""
        if len(projects) <= 1:
            return [item for p in projects for item in self.list_items(p.id, p.title)]
        workers = min(MAX_FETCH_WORKERS, len(projects))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            pages = list(pool.map(lambda p: self.list_items(p.id, p.title), projects))
        return [item for page in pages for item in page]

    def find_item_by_number(self, repo: RepoInfo, issue_number: int) -> ProjectItem | None:
        """Find the project item for ``repo#issue_number`` in any linked project."""
        for project in self.get_projects(repo):
            for item in self.list_items(project.id, project.title):
                if item.number != issue_number:
                    continue
                owner_name = item.repository_full_name
                if owner_name is None or owner_name.lower() == repo.full_name.lower():
                    return item
        return None

    # ------------------------------------------------------------------
    # Project and issue mutations (fail fast)
    # ------------------------------------------------------------------

    def update_item_field_value(
        self, project_id: str, item_id: str, field_id: str, value: dict
    ) -> None:
        """Set a field value, e.g. ``{"singleSelectOptionId": ...}`` or ``{"text": ...}``."""
        mutation = """
        mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $value: ProjectV2FieldValue!) {
          updateProjectV2ItemFieldValue(input: {
            projectId: $projectId,
            itemId: $itemId,
            fieldId: $fieldId,
            value: $value
          }) {
            projectV2Item { id }
          }
        }
        """
        self._graphql(
            mutation,
            {"projectId": project_id, "itemId": item_id, "fieldId": field_id, "value": value},
        )

    def update_item_status(
        self, project_id: str, item_id: str, field_id: str, option_id: str
    ) -> None:
        self.update_item_field_value(
            project_id, item_id, field_id, {"singleSelectOptionId": option_id}
        )

    def create_issue(
        self,
        repo: RepoInfo,
        title: str,
        body: str = "",
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> tuple[str, int]:
        """Create an issue. Returns ``(node_id, number)``."""
        payload: dict = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels
        if assignees:
            payload["assignees"] = assignees
        resp = self._rest("POST", f"/repos/{repo.owner}/{repo.name}/issues", json=payload)
        resp.raise_for_status()
        data = resp.json()
        return data["node_id"], data["number"]

    def add_to_project(self, project_id: str, content_id: str) -> str:
        """Add an issue or PR to a project. Returns the new item ID."""
        mutation = """
        mutation($projectId: ID!, $contentId: ID!) {
          addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
            item { id }
          }
        }
        """
        data = self._graphql(mutation, {"projectId": project_id, "contentId": content_id})
        return data["addProjectV2ItemById"]["item"]["id"]

    def update_assignees(self, repo: RepoInfo, issue_number: int, assignees: list[str]) -> None:
        resp = self._rest(
            "PATCH",
            f"/repos/{repo.owner}/{repo.name}/issues/{issue_number}",
            json={"assignees": assignees},
        )
        resp.raise_for_status()

    def add_assignees(self, repo: RepoInfo, issue_number: int, users: list[str]) -> None:
        resp = self._rest(
            "POST",
            f"/repos/{repo.owner}/{repo.name}/issues/{issue_number}/assignees",
            json={"assignees": users},
        )
        resp.raise_for_status()

    def remove_assignees(self, repo: RepoInfo, issue_number: int, users: list[str]) -> None:
        resp = self._rest(
            "DELETE",
            f"/repos/{repo.owner}/{repo.name}/issues/{issue_number}/assignees",
            json={"assignees": users},
        )
        resp.raise_for_status()

    # ------------------------------------------------------------------
    # Labels (best effort: failures are logged and reported as False)
    # ------------------------------------------------------------------

    def ensure_label(
        self, repo: RepoInfo, name: str, color: str, description: str = ""
    ) -> bool:
        """Create the label if missing. An existing label counts as success."""
        try:
            resp = self._rest(
                "POST",
                f"/repos/{repo.owner}/{repo.name}/labels",
                json={"name": name, "color": color, "description": description},
            )
        except httpx.HTTPError as e:
            logger.error("Failed to create label %r in %s: %s", name, repo.full_name, e)
            return False
        if resp.status_code == 201:
            logger.debug("Created label %r in %s", name, repo.full_name)
            return True
        if resp.status_code == 422 and "already_exists" in resp.text:
            return True
        logger.error(
            "Failed to create label %r in %s: HTTP %d", name, repo.full_name, resp.status_code
        )
        return False

    def add_label(self, repo: RepoInfo, issue_number: int, name: str) -> bool:
        try:
            resp = self._rest(
                "POST",
                f"/repos/{repo.owner}/{repo.name}/issues/{issue_number}/labels",
                json={"labels": [name]},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to add label %r to %s#%d: %s", name, repo.full_name, issue_number, e)
            return False
        return True

    def remove_label(self, repo: RepoInfo, issue_number: int, name: str) -> bool:
        path = (
            f"/repos/{repo.owner}/{repo.name}/issues/{issue_number}"
            f"/labels/{quote(name, safe='')}"
        )
        try:
            resp = self._rest("DELETE", path)
        except httpx.HTTPError as e:
            logger.error(
                "Failed to remove label %r from %s#%d: %s", name, repo.full_name, issue_number, e
            )
            return False
        # 404: the issue no longer carries the label, which is the goal.
        if resp.status_code in (200, 204, 404):
            return True
        logger.error(
            "Failed to remove label %r from %s#%d: HTTP %d",
            name, repo.full_name, issue_number, resp.status_code,
        )
        return False

    def issues_with_label(self, repo: RepoInfo, name: str) -> list[int]:
        """Numbers of open issues and PRs in ``repo`` carrying the label."""
        numbers: list[int] = []
        url: str | None = f"{GITHUB_REST_URL}/repos/{repo.owner}/{repo.name}/issues"
        params: dict | None = {"labels": name, "state": "open", "per_page": 100}
        while url:
            resp = self._client.get(url, params=params)
            resp.raise_for_status()
            numbers.extend(issue["number"] for issue in resp.json())
            url = resp.links.get("next", {}).get("url")
            params = None  # the next link already carries the query
        return numbers

    def project_items_with_label(self, project_id: str, name: str) -> list[tuple[str, int]]:
        """``(owner/name, number)`` for every project item carrying the label."""
        return [
            (item.repository_full_name, item.number)
            for item in self.list_items(project_id)
            if item.number is not None
            and item.repository_full_name
            and name in item.label_names
        ]

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubProjectClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _parse_field_values(nodes: list[dict]) -> dict[str, FieldValue]:
    """Convert GraphQL field value nodes into typed values keyed by field name."""
    values: dict[str, FieldValue] = {}
    for fv in nodes:
        if not fv:
            continue
        name = (fv.get("field") or {}).get("name")
        if not name:
            continue
        typename = fv.get("__typename", "")
        if typename == "ProjectV2ItemFieldSingleSelectValue" and fv.get("name"):
            values[name] = FieldValue("single_select", fv["name"])
        elif typename == "ProjectV2ItemFieldTextValue" and fv.get("text"):
            values[name] = FieldValue("text", fv["text"])
        elif typename == "ProjectV2ItemFieldNumberValue" and fv.get("number") is not None:
            values[name] = FieldValue("number", float(fv["number"]))
        elif typename == "ProjectV2ItemFieldDateValue" and fv.get("date"):
            try:
                values[name] = FieldValue("date", date.fromisoformat(fv["date"]))
            except (ValueError, TypeError):
                values[name] = FieldValue("text", str(fv["date"]))
        elif typename == "ProjectV2ItemFieldIterationValue" and fv.get("title"):
            values[name] = FieldValue("iteration", fv["title"])
    return values
