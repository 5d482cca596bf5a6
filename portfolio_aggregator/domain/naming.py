import unicodedata
from typing import Iterable, List, Pattern, Tuple

from portfolio_aggregator.domain.models import PortfolioEntry, RepositoryDescriptor


def extract_portfolio_name(repo_name: str, pattern: Pattern[str]) -> str:
    """
    Derives a display name from a repository name.

    Example: "portfolioBloxy" -> "Bloxy". Names that do not match the pattern
    are returned unchanged.
    """
    match = pattern.search(repo_name)
    if match and match.group(1):
        captured = match.group(1)
        return captured[0].upper() + captured[1:]
    return repo_name


def filter_portfolio_repos(
    repos: Iterable[RepositoryDescriptor], pattern: Pattern[str]
) -> List[RepositoryDescriptor]:
    return [repo for repo in repos if pattern.search(repo.name)]


def collation_key(name: str) -> Tuple[str, str]:
    """
    Locale-style comparison key for display names.

    Accents and case are ignored at the first level; on ties lowercase sorts
    before uppercase.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), name.swapcase()


def portfolio_sort_key(entry: PortfolioEntry) -> Tuple[bool, Tuple[str, str]]:
    return not entry.featured, collation_key(entry.name)


def sort_portfolios(entries: Iterable[PortfolioEntry]) -> List[PortfolioEntry]:
    """Featured entries first, then by display name. Equal keys keep their input order."""
    return sorted(entries, key=portfolio_sort_key)
