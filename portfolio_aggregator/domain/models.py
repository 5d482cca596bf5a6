from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

DEFAULT_BRANCH = "main"


class RepositoryDescriptor(BaseModel):
    """
    Immutable domain model representing a repository as reported by the provider.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name of the repository, unique per owner")
    description: Optional[str] = Field(None, description="Repository description")
    homepage: Optional[str] = Field(None, description="Homepage URL configured on the repository")
    html_url: Optional[str] = Field(None, description="Browser URL of the repository")
    stars: int = Field(0, ge=0, description="Total number of stargazers")
    forks: int = Field(0, ge=0, description="Total number of forks")
    updated_at: Optional[datetime] = Field(None, description="Timestamp of the last update")
    language: Optional[str] = Field(None, description="Primary language")
    topics: List[str] = Field(default_factory=list, description="Repository topics")
    default_branch: str = Field(DEFAULT_BRANCH, description="Name of the default branch")
    is_private: bool = Field(False, description="Whether the repository is private")


class PortfolioOrigin(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


class PortfolioEntry(BaseModel):
    """
    Immutable, normalized project description shown to portfolio viewers.

    Static entries are authored in configuration. Dynamic entries are rebuilt
    from a matching repository on every cache refresh and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name")
    slug: str = Field(..., description="Lowercase identifier used for lookups")
    description: Optional[str] = Field(None, description="Short description")
    path: Optional[str] = Field(None, description="Site path of a hand-authored page")
    repo_name: Optional[str] = Field(None, description="Exact repository name backing a dynamic entry")
    repo_url: Optional[str] = Field(None, description="Repository URL, dynamic entries only")
    homepage: Optional[str] = None
    stars: int = Field(0, ge=0)
    forks: int = Field(0, ge=0)
    updated_at: Optional[datetime] = None
    language: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    default_branch: Optional[str] = None
    thumbnail: Optional[str] = Field(None, description="Thumbnail image URL")
    origin: PortfolioOrigin = Field(PortfolioOrigin.STATIC, description="Where the entry came from")
    featured: bool = Field(False, description="Featured entries sort first")
    is_private: bool = False

    @property
    def is_dynamic(self) -> bool:
        return self.origin is PortfolioOrigin.DYNAMIC


class PortfolioConfig(BaseModel):
    """Optional overlay read from a repository's portfolio config file."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    featured: Optional[bool] = None

    @field_validator("name", "description", "thumbnail", "featured", mode="wrap")
    @classmethod
    def _drop_invalid_field(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        # A mistyped key only loses its own override
        try:
            return handler(value)
        except ValidationError:
            return None


class TreeNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    type: str = Field(..., description="'blob' for files, 'tree' for directories")
    sha: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class RepositoryTree(BaseModel):
    """Recursive file tree of a repository branch."""
    model_config = ConfigDict(frozen=True)

    sha: Optional[str] = None
    truncated: bool = Field(False, description="True when the provider cut the listing short")
    nodes: List[TreeNode] = Field(default_factory=list)


class PortfolioContent(PortfolioEntry):
    """A dynamic portfolio entry together with its README and file tree."""

    readme: Optional[str] = None
    tree: Optional[RepositoryTree] = None


class CacheRecord(BaseModel):
    """The last computed portfolio sequence and when it was computed."""
    model_config = ConfigDict(frozen=True)

    entries: Tuple[PortfolioEntry, ...]
    timestamp_ms: float
