import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy import (
    Table, Column, String, Integer, Text, DateTime, ForeignKey, MetaData,
    func, or_, select, update,
)

from src.domain.exceptions import DatabaseException, PersistFailure
from src.domain.models import Candidate, GitHubFields

logger = logging.getLogger(__name__)

# asyncpg raises plain OSError subclasses when the server is unreachable
STORE_ERRORS = (SQLAlchemyError, OSError)

# Only release URLs on github.com are considered (PostgreSQL ~* operator)
GITHUB_URL_PATTERN = r"^https?://github\.com"
DEFAULT_FRESHNESS = timedelta(days=1)

# SQLAlchemy core Table definitions
metadata = MetaData()
packages_table = Table(
    'packages', metadata,
    Column('id', Integer, primary_key=True),
    Column('name', String, nullable=False, unique=True),
    # GitHub snapshot, NULL until the first successful sync
    Column('github_description', Text),
    Column('github_stars', Integer),
    Column('github_forks', Integer),
    Column('github_issues', Integer),
    Column('github_last_commit', DateTime(timezone=True)),
    Column('github_last_update', DateTime(timezone=True)),
)
releases_table = Table(
    'releases', metadata,
    Column('id', Integer, primary_key=True),
    Column('package_id', Integer, ForeignKey('packages.id'), nullable=False),
    Column('version', String, nullable=False),
    Column('release_time', DateTime(timezone=True), nullable=False),
    Column('repository_url', String),
)


def build_candidates_query(cutoff: datetime):
    """
    One row per package: the repository URL of its newest github.com release,
    restricted to packages never synced or last synced before ``cutoff``.
    """
    packages, releases = packages_table, releases_table
    return (
        select(packages.c.name, packages.c.id, releases.c.repository_url)
        .select_from(packages.join(releases, releases.c.package_id == packages.c.id))
        .where(
            releases.c.repository_url.regexp_match(GITHUB_URL_PATTERN, flags="i"),
            or_(
                packages.c.github_last_update.is_(None),
                packages.c.github_last_update < cutoff,
            ),
        )
        .distinct(packages.c.name)
        .order_by(packages.c.name, releases.c.release_time.desc(), releases.c.id.desc())
    )


class PostgresRepository:
    """
    Repository class for interacting with the PostgreSQL database.
    Selects packages due for a GitHub refresh and writes the fetched fields back.
    """

    def __init__(self, db_url: str):
        self.engine = create_async_engine(db_url, echo=False)

    async def select_candidates(self, freshness: timedelta = DEFAULT_FRESHNESS) -> AsyncIterator[Candidate]:
        """
        Yields the packages whose GitHub fields are missing or older than ``freshness``.

        The query runs once, on the first iteration; the result is consumed
        in order and cannot be restarted.

        Raises:
            DatabaseException: The candidate query could not be executed.
        """
        cutoff = datetime.now(timezone.utc) - freshness
        stmt = build_candidates_query(cutoff)

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                rows = list(result)
        except STORE_ERRORS as e:
            raise DatabaseException(f"Failed to select sync candidates: {e}") from e

        logger.info(f"Selected {len(rows)} packages for GitHub sync.")
        for name, package_id, repository_url in rows:
            yield Candidate(package_name=name, package_id=package_id, repository_url=repository_url)

    async def update_github_fields(self, package_id: int, fields: GitHubFields) -> None:
        """
        Overwrites the GitHub snapshot of a package and stamps the update time.

        Args:
            package_id (int): Id of the package row.
            fields (GitHubFields): Freshly fetched metadata.

        Raises:
            PersistFailure: The update failed or matched no package.
        """
        stmt = (
            update(packages_table)
            .where(packages_table.c.id == package_id)
            .values(
                github_description=fields.description,
                github_stars=fields.stars,
                github_forks=fields.forks,
                github_issues=fields.issues,
                github_last_commit=fields.last_commit,
                github_last_update=func.now(),
            )
        )
        await self._execute_update(stmt, package_id)

    async def touch_last_update(self, package_id: int) -> None:
        """Stamps ``github_last_update`` only, leaving the stored snapshot untouched."""
        stmt = (
            update(packages_table)
            .where(packages_table.c.id == package_id)
            .values(github_last_update=func.now())
        )
        await self._execute_update(stmt, package_id)

    async def _execute_update(self, stmt, package_id: int) -> None:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except STORE_ERRORS as e:
            raise PersistFailure(f"Failed to update package {package_id}: {e}") from e

        if result.rowcount == 0:
            raise PersistFailure(f"No package with id {package_id}.")
