import json
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Pattern

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from portfolio_aggregator.domain.exceptions import ConfigurationException
from portfolio_aggregator.domain.models import PortfolioEntry, PortfolioOrigin

DEFAULT_OWNER = "Trizly-xyz"
DEFAULT_REPO_PATTERN = r"^portfolio(.+)$"
DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
# Same size as the GitHub client's connection pool
DEFAULT_MAX_CONCURRENT_FETCHES = 10

# Hand-authored pages that are not backed by a repository
DEFAULT_STATIC_ENTRIES = [
    {
        "name": "Bloxy",
        "slug": "bloxy",
        "path": "/portfolio/bloxy/",
        "description": "Roblox community management bot",
        "featured": True,
    },
    {
        "name": "Mason",
        "slug": "mason",
        "path": "/portfolio/mason/",
        "description": "Advanced Discord bot",
        "featured": True,
    },
    {
        "name": "Trizl",
        "slug": "trizl",
        "path": "/portfolio/trizl/",
        "description": "Next-gen community tools",
        "featured": True,
    },
]


class ExpectedFiles(BaseModel):
    """Relative paths probed inside every portfolio repository."""
    model_config = ConfigDict(frozen=True)

    readme: str = "README.md"
    config: str = "portfolio.json"
    thumbnail: str = "thumbnail.png"


class PortfolioSettings(BaseModel):
    """
    Settings consumed by the portfolio aggregator.

    `repo_pattern` strings are compiled case-insensitively and must capture the
    project name in their first group.
    """
    model_config = ConfigDict(frozen=True)

    owner: str = Field(DEFAULT_OWNER, min_length=1, description="GitHub user or organization to query")
    repo_pattern: Pattern[str] = Field(default_factory=lambda: re.compile(DEFAULT_REPO_PATTERN, re.IGNORECASE))
    static_entries: List[PortfolioEntry] = Field(
        default_factory=lambda: [PortfolioEntry.model_validate(entry) for entry in DEFAULT_STATIC_ENTRIES]
    )
    cache_ttl_ms: int = Field(DEFAULT_CACHE_TTL_MS, ge=0, description="Cache validity window in milliseconds")
    fetch_timeout_seconds: float = Field(DEFAULT_FETCH_TIMEOUT_SECONDS, gt=0, description="Bound on every provider call")
    max_concurrent_fetches: int = Field(DEFAULT_MAX_CONCURRENT_FETCHES, ge=1, description="Provider calls in flight at once")
    expected_files: ExpectedFiles = Field(default_factory=ExpectedFiles)
    github_token: Optional[str] = Field(None, repr=False)

    @field_validator("repo_pattern", mode="before")
    @classmethod
    def _compile_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = re.compile(value, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid repository pattern: {e}") from e
        if isinstance(value, re.Pattern) and value.groups < 1:
            raise ValueError("repository pattern needs a capture group for the project name")
        return value

    @field_validator("static_entries")
    @classmethod
    def _force_static_origin(cls, entries: List[PortfolioEntry]) -> List[PortfolioEntry]:
        return [
            entry if entry.origin is PortfolioOrigin.STATIC
            else entry.model_copy(update={"origin": PortfolioOrigin.STATIC})
            for entry in entries
        ]

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "PortfolioSettings":
        """
        Builds settings from environment variables, loading a .env file first.

        Raises:
            ConfigurationException: when a variable holds an invalid value.
        """
        load_dotenv(env_file)

        values: dict = {}
        env_map = {
            "owner": "PORTFOLIO_GITHUB_OWNER",
            "repo_pattern": "PORTFOLIO_REPO_PATTERN",
            "cache_ttl_ms": "PORTFOLIO_CACHE_TTL_MS",
            "fetch_timeout_seconds": "PORTFOLIO_FETCH_TIMEOUT_SECONDS",
            "max_concurrent_fetches": "PORTFOLIO_MAX_CONCURRENT_FETCHES",
            "github_token": "GITHUB_TOKEN",
        }
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = raw

        static_file = os.getenv("PORTFOLIO_STATIC_ENTRIES_FILE")
        if static_file:
            values["static_entries"] = cls._read_static_entries(Path(static_file))

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid portfolio settings: {e}") from e

    @staticmethod
    def _read_static_entries(path: Path) -> list:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationException(f"Cannot read static entries from {path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigurationException(f"Static entries file {path} must contain a JSON list.")
        return data
