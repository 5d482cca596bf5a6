import asyncio
import logging
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from portfolio_aggregator.application.cache import Clock, PortfolioCache, SystemClock
from portfolio_aggregator.application.outcome import guarded_fetch
from portfolio_aggregator.application.transformer import PortfolioTransformer
from portfolio_aggregator.config import PortfolioSettings
from portfolio_aggregator.domain.models import (
    DEFAULT_BRANCH,
    PortfolioContent,
    PortfolioEntry,
    RepositoryDescriptor,
)
from portfolio_aggregator.domain.naming import filter_portfolio_repos, sort_portfolios
from portfolio_aggregator.domain.ports import RepositoryDataProvider

logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Aggregates static portfolio entries with entries derived from the owner's
    repositories and caches the combined, sorted sequence for a TTL window.

    Provider failures never escape the public operations: they shrink the
    result instead.
    """

    def __init__(
            self,
            provider: RepositoryDataProvider,
            settings: PortfolioSettings,
            clock: Optional[Clock] = None,
    ):
        self.provider = provider
        self.settings = settings
        self.cache = PortfolioCache(ttl_ms=settings.cache_ttl_ms, clock=clock or SystemClock())
        self._fetch_slots = asyncio.Semaphore(settings.max_concurrent_fetches)
        self.transformer = PortfolioTransformer(provider, settings, slots=self._fetch_slots)
        self._refresh_lock = asyncio.Lock()

    async def get_all_portfolios(self) -> Tuple[PortfolioEntry, ...]:
        """
        Returns all portfolios, featured first and then by name.

        Within the TTL window the cached sequence itself is returned without I/O.
        Concurrent callers that miss the cache share a single refresh.
        """
        cached = self.cache.get()
        if cached is not None:
            logger.debug("Using cached portfolio data")
            return cached

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            cached = self.cache.get()
            if cached is not None:
                return cached

            started_ms = self.cache.clock.now_ms()
            logger.info(f"Fetching fresh portfolio data for {self.settings.owner}...")
            entries = await self._build_portfolios()
            return self.cache.store(entries, timestamp_ms=started_ms).entries

    async def get_portfolio(self, slug: str) -> Optional[PortfolioEntry]:
        """Returns the first portfolio with this slug, or None."""
        portfolios = await self.get_all_portfolios()
        return next((entry for entry in portfolios if entry.slug == slug), None)

    async def get_portfolio_content(self, slug: str) -> Optional[PortfolioContent]:
        """
        Returns a dynamic portfolio together with its README and file tree.

        Static or unknown slugs yield None. Either document may be None when
        its fetch fails.
        """
        entry = await self.get_portfolio(slug)
        if entry is None or not entry.is_dynamic:
            return None

        repo_name = entry.repo_name or entry.slug
        branch = entry.default_branch or DEFAULT_BRANCH
        timeout = self.settings.fetch_timeout_seconds

        readme_outcome, tree_outcome = await asyncio.gather(
            guarded_fetch(
                self.provider.fetch_file(self.settings.owner, repo_name, self.settings.expected_files.readme, branch),
                timeout=timeout,
                label=f"README for {repo_name}",
                slots=self._fetch_slots,
            ),
            guarded_fetch(
                self.provider.fetch_tree(self.settings.owner, repo_name, branch),
                timeout=timeout,
                label=f"Tree for {repo_name}",
                slots=self._fetch_slots,
            ),
        )

        readme = readme_outcome.unwrap_or(None)
        return PortfolioContent(
            **dict(entry),
            readme=readme.decode("utf-8", errors="replace") if readme is not None else None,
            tree=tree_outcome.unwrap_or(None),
        )

    async def get_portfolio_file(self, slug: str, path: str) -> Optional[bytes]:
        """Returns the raw bytes of a file inside a dynamic portfolio's repository, or None."""
        entry = await self.get_portfolio(slug)
        if entry is None or not entry.is_dynamic:
            return None

        repo_name = entry.repo_name or entry.slug
        outcome = await guarded_fetch(
            self.provider.fetch_file(
                self.settings.owner, repo_name, path, entry.default_branch or DEFAULT_BRANCH
            ),
            timeout=self.settings.fetch_timeout_seconds,
            label=f"File {path} from {repo_name}",
            slots=self._fetch_slots,
        )
        return outcome.unwrap_or(None)

    async def _build_portfolios(self) -> List[PortfolioEntry]:
        listing = await guarded_fetch(
            self.provider.list_repositories(self.settings.owner),
            timeout=self.settings.fetch_timeout_seconds,
            label=f"Repository listing for {self.settings.owner}",
            slots=self._fetch_slots,
        )
        repos = listing.unwrap_or([])
        matching = filter_portfolio_repos(repos, self.settings.repo_pattern)

        dynamic = await self._transform_all(matching)
        logger.info(
            f"Found {len(matching)} portfolio repositories out of {len(repos)}; "
            f"{len(dynamic)} transformed."
        )

        portfolios = sort_portfolios([*self.settings.static_entries, *dynamic])
        self._warn_duplicate_slugs(portfolios)
        return portfolios

    async def _transform_all(self, repos: Sequence[RepositoryDescriptor]) -> List[PortfolioEntry]:
        results = await asyncio.gather(
            *(self.transformer.transform(repo) for repo in repos),
            return_exceptions=True,
        )

        entries: List[PortfolioEntry] = []
        for repo, result in zip(repos, results):
            if isinstance(result, Exception):
                logger.error(f"Dropping portfolio for {repo.name}: {result!r}")
            elif isinstance(result, BaseException):
                raise result
            else:
                entries.append(result)
        return entries

    @staticmethod
    def _warn_duplicate_slugs(portfolios: Sequence[PortfolioEntry]) -> None:
        # Duplicates are kept as-is; lookups return the first one in sort order.
        counts = Counter(entry.slug for entry in portfolios)
        for slug, count in counts.items():
            if count > 1:
                logger.warning(f"Slug '{slug}' is used by {count} portfolios; lookups return the first.")
