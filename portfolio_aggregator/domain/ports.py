from typing import List, Protocol

from portfolio_aggregator.domain.models import RepositoryDescriptor, RepositoryTree


class RepositoryDataProvider(Protocol):
    """
    Contract for the repository hosting service backing dynamic portfolios.

    Implementations raise ResourceNotFoundException when something does not
    exist and ProviderException for any other transport failure.
    """

    async def list_repositories(self, owner: str) -> List[RepositoryDescriptor]:
        """Return every repository visible for the owner."""
        ...

    async def fetch_file(self, owner: str, repo: str, path: str, branch: str) -> bytes:
        """Return the raw bytes of a single file on a branch."""
        ...

    async def fetch_tree(self, owner: str, repo: str, branch: str) -> RepositoryTree:
        """Return the recursive file tree of a branch."""
        ...
