import io
import json
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from portfolio_aggregator import main as entrypoint
from portfolio_aggregator.config import PortfolioSettings
from portfolio_aggregator.domain.exceptions import ConfigurationException, ResourceNotFoundException
from portfolio_aggregator.domain.models import RepositoryDescriptor


class _FakeClient:
    def __init__(self, token=None) -> None:
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def list_repositories(self, owner):
        return [RepositoryDescriptor(name="portfolioApple")]

    async def fetch_file(self, owner, repo, path, branch):
        raise ResourceNotFoundException(path)

    async def fetch_tree(self, owner, repo, branch):
        raise ResourceNotFoundException(branch)


class TestMain(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        settings = PortfolioSettings(static_entries=[{"name": "Trizl", "slug": "trizl", "featured": True}])
        for target, kwargs in [
            ("portfolio_aggregator.main.PortfolioSettings.from_env", {"return_value": settings}),
            ("portfolio_aggregator.main.GitHubRestClient", {"new": _FakeClient}),
        ]:
            patcher = patch(target, **kwargs)
            patcher.start()
            self.addCleanup(patcher.stop)

    async def test_lists_portfolios_as_json(self) -> None:
        out = io.StringIO()
        with redirect_stdout(out):
            code = await entrypoint.main([])

        self.assertEqual(code, 0)
        self.assertEqual([item["slug"] for item in json.loads(out.getvalue())], ["trizl", "portfolioapple"])

    async def test_prints_content_for_dynamic_slug(self) -> None:
        out = io.StringIO()
        with redirect_stdout(out):
            code = await entrypoint.main(["portfolioapple"])

        self.assertEqual(code, 0)
        payload = json.loads(out.getvalue())
        self.assertIsNone(payload["readme"])
        self.assertEqual(payload["origin"], "dynamic")

    async def test_unknown_slug_exits_with_error(self) -> None:
        self.assertEqual(await entrypoint.main(["trizl"]), 1)

    async def test_invalid_settings_exit_with_error(self) -> None:
        with patch(
            "portfolio_aggregator.main.PortfolioSettings.from_env",
            side_effect=ConfigurationException("bad"),
        ):
            self.assertEqual(await entrypoint.main([]), 1)
