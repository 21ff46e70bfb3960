import asyncio
import os
import sys
import logging
from datetime import timedelta
from dotenv import load_dotenv

from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.database import PostgresRepository
from src.application.rate_limiter import DEFAULT_DELAY_SECONDS, FixedDelayRateLimiter
from src.application.sync_service import GitHubSyncService
from src.domain.exceptions import DatabaseException

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


def read_settings() -> dict:
    """Reads the sync settings from the environment, exiting on invalid values."""
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        logger.error("DATABASE_URL is not set in the environment.")
        sys.exit(1)

    try:
        freshness_hours = float(os.getenv("PKGSYNC_FRESHNESS_HOURS", "24"))
        delay_seconds = float(os.getenv("PKGSYNC_DELAY_SECONDS", str(DEFAULT_DELAY_SECONDS)))
    except ValueError as e:
        logger.error(f"Invalid numeric setting: {e}")
        sys.exit(1)

    if freshness_hours < 0 or delay_seconds < 0:
        logger.error("PKGSYNC_FRESHNESS_HOURS and PKGSYNC_DELAY_SECONDS must not be negative.")
        sys.exit(1)

    return {
        "db_url": db_url,
        "freshness": timedelta(hours=freshness_hours),
        "delay_seconds": delay_seconds,
        "stamp_failed_attempts": os.getenv("PKGSYNC_STAMP_FAILED_ATTEMPTS", "").strip().lower() in TRUTHY,
    }


async def main():
    # Load environment variables from .env file
    load_dotenv()
    settings = read_settings()

    # GitHub credentials are optional, anonymous requests are allowed
    github_client = GitHubRestClient.from_env()
    db_repository = PostgresRepository(db_url=settings["db_url"])

    sync_service = GitHubSyncService(
        github_client=github_client,
        db_repository=db_repository,
        rate_limiter=FixedDelayRateLimiter(settings["delay_seconds"]),
        freshness=settings["freshness"],
        stamp_failed_attempts=settings["stamp_failed_attempts"],
    )

    try:
        await sync_service.sync()
    except KeyboardInterrupt:
        logger.info("Sync interrupted by user. Exiting gracefully.")
    except DatabaseException as e:
        logger.error(f"GitHub sync aborted: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)
    finally:
        await db_repository.engine.dispose()

if __name__ == "__main__":
    asyncio.run(main())
