import asyncio
import json
import sys
import logging

from portfolio_aggregator.config import PortfolioSettings
from portfolio_aggregator.domain.exceptions import ConfigurationException
from portfolio_aggregator.infrastructure.github_client import GitHubRestClient
from portfolio_aggregator.application.portfolio_service import PortfolioService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

async def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    # Load settings from the environment and .env file
    try:
        settings = PortfolioSettings.from_env()
    except ConfigurationException as e:
        logger.error(str(e))
        return 1

    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set; only public repositories will be visible.")

    async with GitHubRestClient(token=settings.github_token) as client:
        service = PortfolioService(provider=client, settings=settings)

        if not argv:
            portfolios = await service.get_all_portfolios()
            print(json.dumps([entry.model_dump(mode="json") for entry in portfolios], indent=2))
            return 0

        slug = argv[0]
        content = await service.get_portfolio_content(slug)
        if content is None:
            logger.error(f"No dynamic portfolio found for slug '{slug}'.")
            return 1
        print(content.model_dump_json(indent=2))
        return 0

def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting.")
        sys.exit(130)

if __name__ == "__main__":
    run()
