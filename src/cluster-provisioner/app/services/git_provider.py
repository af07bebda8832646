"""GitHub / GitLab REST calls made by the pipeline."""

from __future__ import annotations

from urllib.parse import quote

import httpx

from shared.models import GitProvider
from shared.observability import get_logger

logger = get_logger(__name__)

GITHUB_API = "https://api.github.com"
GITLAB_API = "https://gitlab.com/api/v4"

DEFAULT_REPOSITORIES = ["gitops", "metaphor"]
DEFAULT_TEAMS = ["admins", "developers"]


class GitOperationError(Exception):
    """Raised when a git provider call or local git command fails."""

    pass


class GitProviderClient:
    """Thin client over the git provider's API for one owner/token pair."""

    def __init__(
        self,
        provider: str,
        token: str,
        owner: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider
        self.token = token
        self.owner = owner
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if self.provider == GitProvider.GITHUB:
            base_url = GITHUB_API
            headers = {"Authorization": f"Bearer {self.token}", "Accept": "application/vnd.github+json"}
        else:
            base_url = GITLAB_API
            headers = {"PRIVATE-TOKEN": self.token}
        return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=30.0, transport=self._transport)

    async def _get(self, http: httpx.AsyncClient, path: str, **params: str) -> httpx.Response:
        try:
            return await http.get(path, params=params or None)
        except httpx.HTTPError as e:
            raise GitOperationError(f"{self.provider} request {path} failed: {e}") from e

    async def initialize(
        self,
        repositories: list[str] | None = None,
        teams: list[str] | None = None,
    ) -> int:
        """Check the token works and no managed repositories or teams exist yet.

        Returns:
            The GitLab owner group id (0 for GitHub)
        """
        repositories = repositories or DEFAULT_REPOSITORIES
        teams = teams or DEFAULT_TEAMS
        async with self._client() as http:
            response = await self._get(http, "/user")
            if response.status_code != 200:
                raise GitOperationError(f"{self.provider} token rejected: HTTP {response.status_code}")

            if self.provider == GitProvider.GITHUB:
                return await self._check_github(http, repositories, teams)
            return await self._check_gitlab(http, repositories)

    async def _check_github(self, http: httpx.AsyncClient, repositories: list[str], teams: list[str]) -> int:
        existing = []
        for repo in repositories:
            if (await self._get(http, f"/repos/{self.owner}/{repo}")).status_code == 200:
                existing.append(f"repository {repo}")
        for team in teams:
            if (await self._get(http, f"/orgs/{self.owner}/teams/{team}")).status_code == 200:
                existing.append(f"team {team}")
        if existing:
            raise GitOperationError(
                f"github.com/{self.owner} already contains {', '.join(existing)}; remove them before provisioning"
            )
        return 0

    async def _check_gitlab(self, http: httpx.AsyncClient, repositories: list[str]) -> int:
        response = await self._get(http, f"/groups/{quote(self.owner, safe='')}")
        if response.status_code != 200:
            raise GitOperationError(f"gitlab group {self.owner} not found")
        group_id = int(response.json()["id"])

        existing = []
        for repo in repositories:
            path = quote(f"{self.owner}/{repo}", safe="")
            if (await self._get(http, f"/projects/{path}")).status_code == 200:
                existing.append(repo)
        if existing:
            raise GitOperationError(
                f"gitlab.com/{self.owner} already contains projects {', '.join(existing)}; remove them before provisioning"
            )
        return group_id

    async def delete_ssh_key(self, title: str) -> int:
        """Remove every user SSH key with the given title.

        Returns:
            Number of keys removed
        """
        removed = 0
        async with self._client() as http:
            try:
                response = await self._get(http, "/user/keys")
                response.raise_for_status()
                for key in response.json():
                    if key.get("title") != title:
                        continue
                    result = await http.delete(f"/user/keys/{key['id']}")
                    result.raise_for_status()
                    removed += 1
            except httpx.HTTPError as e:
                raise GitOperationError(f"{self.provider} ssh key removal failed: {e}") from e
        logger.info("Deleted ssh keys", provider=self.provider, title=title, count=removed)
        return removed

    async def delete_container_registry_repositories(self, projects: list[str]) -> int:
        """Remove GitLab registry repositories that block project destroy."""
        removed = 0
        async with self._client() as http:
            for project in projects:
                path = quote(f"{self.owner}/{project}", safe="")
                response = await self._get(http, f"/projects/{path}/registry/repositories")
                if response.status_code == 404:
                    continue
                try:
                    response.raise_for_status()
                    for repository in response.json():
                        result = await http.delete(f"/projects/{path}/registry/repositories/{repository['id']}")
                        result.raise_for_status()
                        removed += 1
                except httpx.HTTPError as e:
                    raise GitOperationError(f"gitlab registry cleanup for {project} failed: {e}") from e
        logger.info("Deleted container registry repositories", count=removed)
        return removed
