import logging
from datetime import datetime, timedelta, timezone
import aiohttp

from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.acl import extract_github_path
from src.infrastructure.database import DEFAULT_FRESHNESS, PostgresRepository
from src.application.rate_limiter import FixedDelayRateLimiter
from src.domain.exceptions import (
    ExtractionFailure,
    ParseError,
    PersistFailure,
    RemoteUnavailable,
    TransportError,
)
from src.domain.models import Candidate, SyncOutcome, SyncReport, SyncStatus

logger = logging.getLogger(__name__)

ERROR_STATUSES = {
    ExtractionFailure: SyncStatus.EXTRACTION_FAILED,
    TransportError: SyncStatus.TRANSPORT_ERROR,
    RemoteUnavailable: SyncStatus.REMOTE_UNAVAILABLE,
    ParseError: SyncStatus.PARSE_ERROR,
    PersistFailure: SyncStatus.PERSIST_FAILED,
}


def _status_for(error: Exception) -> SyncStatus:
    for error_type, status in ERROR_STATUSES.items():
        if isinstance(error, error_type):
            return status
    raise error


class GitHubSyncService:
    """
    Service responsible for refreshing the GitHub fields of stale packages.

    A pass is strictly sequential: for every candidate selected at the start,
    extract the repository path, fetch it from GitHub, write it back, then wait
    on the rate limiter. A failure is recorded and the pass moves on; only a
    failing candidate query aborts it.
    """

    def __init__(
            self,
            github_client: GitHubRestClient,
            db_repository: PostgresRepository,
            rate_limiter: FixedDelayRateLimiter = None,
            freshness: timedelta = DEFAULT_FRESHNESS,
            stamp_failed_attempts: bool = False,
    ):
        self.github_client = github_client
        self.db_repository = db_repository
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter()
        self.freshness = freshness
        self.stamp_failed_attempts = stamp_failed_attempts

    async def sync(self) -> SyncReport:
        """
        Runs one pass over every package whose GitHub fields are missing or stale.

        Raises:
            DatabaseException: The candidate query failed.
        """
        report = SyncReport()
        logger.info(f"Starting GitHub sync for packages older than {self.freshness}.")

        async with aiohttp.ClientSession() as session:
            async for candidate in self.db_repository.select_candidates(self.freshness):
                outcome = await self._sync_candidate(session, candidate)
                report.outcomes.append(outcome)
                await self.rate_limiter.wait()

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"GitHub sync completed. Updated {report.updated}/{report.total} packages, "
            f"{report.failed} failed."
        )
        return report

    async def _sync_candidate(self, session: aiohttp.ClientSession, candidate: Candidate) -> SyncOutcome:
        """Process a single candidate to a tagged outcome."""
        path = None
        try:
            path = extract_github_path(candidate.repository_url)
            if path is None:
                raise ExtractionFailure(candidate.repository_url)

            fields = await self.github_client.fetch_repository(session, path)
            await self.db_repository.update_github_fields(candidate.package_id, fields)

        except tuple(ERROR_STATUSES) as e:
            status = _status_for(e)
            logger.warning(f"Failed to update GitHub fields of {candidate.package_name}: {e}")
            if self.stamp_failed_attempts and status is not SyncStatus.PERSIST_FAILED:
                await self._stamp_attempt(candidate)
            return SyncOutcome(
                package_name=candidate.package_name,
                package_id=candidate.package_id,
                status=status,
                path=path,
                error=str(e),
            )

        logger.debug(f"Updated GitHub fields of {candidate.package_name} from {path}.")
        return SyncOutcome(
            package_name=candidate.package_name,
            package_id=candidate.package_id,
            status=SyncStatus.UPDATED,
            path=path,
        )

    async def _stamp_attempt(self, candidate: Candidate) -> None:
        try:
            await self.db_repository.touch_last_update(candidate.package_id)
        except PersistFailure as e:
            logger.warning(f"Failed to stamp sync attempt of {candidate.package_name}: {e}")
