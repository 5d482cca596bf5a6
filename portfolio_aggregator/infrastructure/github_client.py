import aiohttp
import asyncio
import logging
from typing import Any, Dict, List, Optional

from portfolio_aggregator.domain.exceptions import (
    ProviderException,
    RateLimitExceededException,
    ResourceNotFoundException,
)
from portfolio_aggregator.domain.models import RepositoryDescriptor, RepositoryTree
from portfolio_aggregator.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

PER_PAGE = 100
# Upper bound on listing pages so a misbehaving API cannot loop forever
MAX_PAGES = 50
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)
# Limit concurrent connections to avoid overwhelming GitHub's servers
CONNECTOR_LIMIT = 10
RATE_LIMIT_STATUSES = {403, 429}


class GitHubRestClient:
    """
    Repository data provider backed by the GitHub REST API and raw.githubusercontent.com.

    Use as an async context manager; the client owns its aiohttp session unless one is injected.
    """

    def __init__(self, token: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "portfolio-aggregator",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        # raw.githubusercontent.com only understands the legacy token scheme
        self.raw_headers = {"User-Agent": "portfolio-aggregator"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
            self.raw_headers["Authorization"] = f"token {token}"
        self.api_url = "https://api.github.com"
        self.raw_url = "https://raw.githubusercontent.com"
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "GitHubRestClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def list_repositories(self, owner: str) -> List[RepositoryDescriptor]:
        """
        Lists every repository of a user or organization, most recently updated first.

        Returns:
            List of RepositoryDescriptor, skipping entries GitHub returned without a name.
        """
        url = f"{self.api_url}/users/{owner}/repos"
        descriptors: List[RepositoryDescriptor] = []

        for page in range(1, MAX_PAGES + 1):
            params = {"per_page": str(PER_PAGE), "sort": "updated", "page": str(page)}
            raw_repos = await self._request(url, self.headers, params=params, expect_json=True)
            if not isinstance(raw_repos, list):
                raise ProviderException(f"Unexpected repository listing payload for {owner}.")

            for raw_repo in raw_repos:
                try:
                    descriptors.append(GitHubTranslator.to_domain(raw_repo))
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning(f"Skipping malformed repository entry for {owner}: {e}")

            if len(raw_repos) < PER_PAGE:
                break

        logger.debug(f"Listed {len(descriptors)} repositories for {owner}.")
        return descriptors

    async def fetch_file(self, owner: str, repo: str, path: str, branch: str) -> bytes:
        url = f"{self.raw_url}/{owner}/{repo}/{branch}/{path.lstrip('/')}"
        return await self._request(url, self.raw_headers, expect_json=False)

    async def fetch_tree(self, owner: str, repo: str, branch: str) -> RepositoryTree:
        url = f"{self.api_url}/repos/{owner}/{repo}/git/trees/{branch}"
        raw_tree = await self._request(url, self.headers, params={"recursive": "1"}, expect_json=True)
        if not isinstance(raw_tree, dict):
            raise ProviderException(f"Unexpected tree payload for {owner}/{repo}@{branch}.")
        try:
            return GitHubTranslator.to_tree(raw_tree)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise ProviderException(f"Malformed tree payload for {owner}/{repo}@{branch}: {e}") from e

    async def _request(
        self,
        url: str,
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
        expect_json: bool = True,
    ) -> Any:
        """
        Performs a single GET request. There are no retries: callers decide how to degrade.

        Raises:
            ResourceNotFoundException: on HTTP 404.
            RateLimitExceededException: when GitHub reports an exhausted quota.
            ProviderException: on any other HTTP error, transport failure, closed session, timeout or bad JSON.
        """
        if self._session is None:
            raise ProviderException("GitHubRestClient used outside of its async context.")

        try:
            async with self._session.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT) as response:
                if response.status == 404:
                    raise ResourceNotFoundException(url)

                if response.status in RATE_LIMIT_STATUSES and response.headers.get('X-RateLimit-Remaining') == '0':
                    reset_at = response.headers.get('X-RateLimit-Reset', 'unknown')
                    logger.warning(f"Rate limit exhausted ({response.status}) for {url}.")
                    raise RateLimitExceededException(reset_at=reset_at)

                if response.status >= 400:
                    raise ProviderException(f"GitHub request to {url} failed with status {response.status}.")

                if expect_json:
                    return await response.json(content_type=None)
                return await response.read()

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, RuntimeError) as e:
            raise ProviderException(f"GitHub request to {url} failed: {e}") from e
