from datetime import datetime
from typing import Any, Dict, Optional
from portfolio_aggregator.domain.models import DEFAULT_BRANCH, RepositoryDescriptor, RepositoryTree, TreeNode

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into domain models.
    """

    @staticmethod
    def to_domain(raw_repo: Dict[str, Any]) -> RepositoryDescriptor:
        """
        Transforms a raw GitHub REST repository object into a RepositoryDescriptor.

        Args:
            raw_repo (Dict[str, Any]): One element of the `/users/{owner}/repos` response.

        Returns:
            RepositoryDescriptor: The domain model instance representing the repository.
        """
        name = raw_repo.get('name')
        if not name:
            raise ValueError("name is required to build RepositoryDescriptor.")

        return RepositoryDescriptor(
            name=name,
            description=raw_repo.get('description'),
            homepage=raw_repo.get('homepage') or None,
            html_url=raw_repo.get('html_url'),
            stars=raw_repo.get('stargazers_count') or 0,
            forks=raw_repo.get('forks_count') or 0,
            updated_at=GitHubTranslator._parse_timestamp(raw_repo.get('updated_at')),
            language=raw_repo.get('language'),
            topics=raw_repo.get('topics') or [],
            default_branch=raw_repo.get('default_branch') or DEFAULT_BRANCH,
            is_private=bool(raw_repo.get('private', False)),
        )

    @staticmethod
    def to_tree(raw_tree: Dict[str, Any]) -> RepositoryTree:
        """Transforms a `git/trees?recursive=1` response into a RepositoryTree."""
        nodes = [
            TreeNode(
                path=item['path'],
                type=item.get('type', 'blob'),
                sha=item.get('sha'),
                size=item.get('size'),
            )
            for item in raw_tree.get('tree', [])
            if item.get('path')
        ]
        return RepositoryTree(
            sha=raw_tree.get('sha'),
            truncated=bool(raw_tree.get('truncated', False)),
            nodes=nodes,
        )

    @staticmethod
    def _parse_timestamp(raw_date: Optional[str]) -> Optional[datetime]:
        if not raw_date:
            return None
        return datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
