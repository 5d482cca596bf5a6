import asyncio
import json
import logging
from typing import Optional

from pydantic import ValidationError

from portfolio_aggregator.application.outcome import FetchOutcome, guarded_fetch
from portfolio_aggregator.config import PortfolioSettings
from portfolio_aggregator.domain.models import (
    DEFAULT_BRANCH,
    PortfolioConfig,
    PortfolioEntry,
    PortfolioOrigin,
    RepositoryDescriptor,
)
from portfolio_aggregator.domain.naming import extract_portfolio_name
from portfolio_aggregator.domain.ports import RepositoryDataProvider

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available"
THUMBNAIL_URL_TEMPLATE = "https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{filename}"


class PortfolioTransformer:
    """Turns a matching repository into a dynamic PortfolioEntry."""

    def __init__(
            self,
            provider: RepositoryDataProvider,
            settings: PortfolioSettings,
            slots: Optional[asyncio.Semaphore] = None,
    ):
        self.provider = provider
        self.settings = settings
        self.slots = slots

    async def fetch_config(self, repo: RepositoryDescriptor) -> FetchOutcome[PortfolioConfig]:
        """
        Reads the optional per-repository config file.

        A missing, unreachable or unparseable file yields a degraded outcome,
        never an exception.
        """
        branch = repo.default_branch or DEFAULT_BRANCH
        outcome = await guarded_fetch(
            self.provider.fetch_file(self.settings.owner, repo.name, self.settings.expected_files.config, branch),
            timeout=self.settings.fetch_timeout_seconds,
            label=f"Config for {repo.name}",
            slots=self.slots,
        )
        if outcome.degraded:
            logger.info(f"No config found for {repo.name}, using defaults")
            return FetchOutcome.degrade(outcome.error)

        try:
            return FetchOutcome.ok(PortfolioConfig.model_validate(json.loads(outcome.value)))
        except (ValueError, ValidationError) as e:
            logger.info(f"Unparseable config in {repo.name}, using defaults: {e}")
            return FetchOutcome.degrade(e)

    async def transform(self, repo: RepositoryDescriptor) -> PortfolioEntry:
        config = (await self.fetch_config(repo)).unwrap_or(PortfolioConfig())
        branch = repo.default_branch or DEFAULT_BRANCH

        return PortfolioEntry(
            name=config.name or extract_portfolio_name(repo.name, self.settings.repo_pattern),
            slug=repo.name.lower(),
            description=config.description or repo.description or NO_DESCRIPTION,
            repo_name=repo.name,
            repo_url=repo.html_url,
            homepage=repo.homepage,
            stars=repo.stars,
            forks=repo.forks,
            updated_at=repo.updated_at,
            language=repo.language,
            topics=list(repo.topics),
            default_branch=branch,
            thumbnail=config.thumbnail or self.thumbnail_url(repo.name, branch),
            origin=PortfolioOrigin.DYNAMIC,
            featured=bool(config.featured),
            is_private=repo.is_private,
        )

    def thumbnail_url(self, repo_name: str, branch: str) -> str:
        return THUMBNAIL_URL_TEMPLATE.format(
            owner=self.settings.owner,
            repo=repo_name,
            branch=branch,
            filename=self.settings.expected_files.thumbnail,
        )
