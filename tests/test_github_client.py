import unittest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from portfolio_aggregator.domain.exceptions import (
    ProviderException,
    RateLimitExceededException,
    ResourceNotFoundException,
)
from portfolio_aggregator.infrastructure.github_client import PER_PAGE, GitHubRestClient


def _response(status=200, json_data=None, body=b"", headers=None):
    resp = AsyncMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=json_data)
    resp.read = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _session(*responses):
    session = AsyncMock()
    session.get = MagicMock(side_effect=list(responses))
    return session


class TestGitHubRestClientHeaders(unittest.TestCase):
    def test_token_is_sent_to_api_and_raw_hosts(self) -> None:
        client = GitHubRestClient(token="test-token")

        self.assertEqual(client.headers["Authorization"], "Bearer test-token")
        self.assertEqual(client.raw_headers["Authorization"], "token test-token")

    def test_anonymous_client_sends_no_authorization(self) -> None:
        client = GitHubRestClient()

        self.assertNotIn("Authorization", client.headers)
        self.assertIn("User-Agent", client.headers)
        self.assertIn("Accept", client.headers)


class TestListRepositories(unittest.IsolatedAsyncioTestCase):
    async def test_pages_until_short_page(self) -> None:
        full_page = [{"name": f"repo{i}"} for i in range(PER_PAGE)]
        last_page = [{"name": "portfolioBloxy"}, {"description": "nameless"}]
        session = _session(_response(json_data=full_page), _response(json_data=last_page))
        client = GitHubRestClient(token="t", session=session)

        repos = await client.list_repositories("Trizly-xyz")

        self.assertEqual(len(repos), PER_PAGE + 1)
        self.assertEqual(repos[-1].name, "portfolioBloxy")
        self.assertEqual(session.get.call_count, 2)
        first_call = session.get.call_args_list[0]
        self.assertEqual(first_call.args[0], "https://api.github.com/users/Trizly-xyz/repos")
        self.assertEqual(first_call.kwargs["params"]["page"], "1")
        self.assertEqual(session.get.call_args_list[1].kwargs["params"]["page"], "2")

    async def test_non_list_payload_raises(self) -> None:
        client = GitHubRestClient(session=_session(_response(json_data={"message": "odd"})))

        with self.assertRaises(ProviderException):
            await client.list_repositories("Trizly-xyz")


class TestFetching(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_file_reads_raw_bytes(self) -> None:
        session = _session(_response(body=b'{"featured": true}'))
        client = GitHubRestClient(token="t", session=session)

        data = await client.fetch_file("Trizly-xyz", "portfolioBloxy", "portfolio.json", "main")

        self.assertEqual(data, b'{"featured": true}')
        self.assertEqual(
            session.get.call_args.args[0],
            "https://raw.githubusercontent.com/Trizly-xyz/portfolioBloxy/main/portfolio.json",
        )

    async def test_fetch_tree_translates_payload(self) -> None:
        payload = {"sha": "abc", "truncated": False, "tree": [{"path": "README.md", "type": "blob"}]}
        session = _session(_response(json_data=payload))
        client = GitHubRestClient(session=session)

        tree = await client.fetch_tree("Trizly-xyz", "portfolioBloxy", "main")

        self.assertEqual([node.path for node in tree.nodes], ["README.md"])
        self.assertEqual(session.get.call_args.kwargs["params"], {"recursive": "1"})

    async def test_404_raises_not_found(self) -> None:
        client = GitHubRestClient(session=_session(_response(status=404)))

        with self.assertRaises(ResourceNotFoundException):
            await client.fetch_file("o", "r", "portfolio.json", "main")

    async def test_exhausted_quota_raises_rate_limit(self) -> None:
        headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
        client = GitHubRestClient(session=_session(_response(status=403, headers=headers)))

        with self.assertRaises(RateLimitExceededException) as ctx:
            await client.fetch_tree("o", "r", "main")

        self.assertEqual(ctx.exception.reset_at, "1700000000")

    async def test_server_error_raises_provider_exception(self) -> None:
        client = GitHubRestClient(session=_session(_response(status=502)))

        with self.assertRaises(ProviderException):
            await client.list_repositories("o")

    async def test_transport_error_is_wrapped(self) -> None:
        session = AsyncMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("boom"))
        client = GitHubRestClient(session=session)

        with self.assertRaises(ProviderException) as ctx:
            await client.fetch_file("o", "r", "README.md", "main")

        self.assertIsInstance(ctx.exception.__cause__, aiohttp.ClientConnectionError)

    async def test_use_outside_context_raises(self) -> None:
        client = GitHubRestClient()

        with self.assertRaises(ProviderException):
            await client.fetch_file("o", "r", "README.md", "main")


class TestMalformedPayloads(unittest.IsolatedAsyncioTestCase):
    async def test_listing_skips_elements_that_are_not_objects(self) -> None:
        payload = [{"name": "portfolioApple"}, None, "portfolioBear", {"name": ""}]
        client = GitHubRestClient(session=_session(_response(json_data=payload)))

        repos = await client.list_repositories("Trizly-xyz")

        self.assertEqual([repo.name for repo in repos], ["portfolioApple"])

    async def test_tree_with_invalid_node_raises_provider_exception(self) -> None:
        payload = {"tree": [{"path": "a", "type": None}]}
        client = GitHubRestClient(session=_session(_response(json_data=payload)))

        with self.assertRaises(ProviderException):
            await client.fetch_tree("o", "r", "main")

    async def test_tree_with_null_listing_raises_provider_exception(self) -> None:
        client = GitHubRestClient(session=_session(_response(json_data={"tree": None})))

        with self.assertRaises(ProviderException):
            await client.fetch_tree("o", "r", "main")

    async def test_closed_session_error_is_wrapped(self) -> None:
        session = AsyncMock()
        session.get = MagicMock(side_effect=RuntimeError("Session is closed"))
        client = GitHubRestClient(session=session)

        with self.assertRaises(ProviderException):
            await client.fetch_file("o", "r", "README.md", "main")
