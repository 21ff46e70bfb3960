from datetime import datetime, timezone
from enum import Enum
import re
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# fromisoformat on 3.10 only takes 3 or 6 fractional digits
FRACTION_RE = re.compile(r"(\d\d:\d\d:\d\d)\.(\d+)")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Candidate(BaseModel):
    """
    A package selected for a GitHub metadata refresh, together with the
    repository URL of its most recent github.com release.
    """
    model_config = ConfigDict(frozen=True)

    package_name: str = Field(..., description="Unique name of the package")
    package_id: int = Field(..., description="Surrogate id of the package row")
    repository_url: str = Field(..., description="Repository URL of the newest qualifying release")


class GitHubFields(BaseModel):
    """
    Immutable snapshot of the GitHub fields stored on a package.

    Built from the raw REST payload in a single validation pass: missing or
    wrong-typed values fall back to their defaults instead of failing.
    """
    model_config = ConfigDict(frozen=True)

    description: str = Field(default="")
    stars: int = Field(default=0, validation_alias="stargazers_count")
    forks: int = Field(default=0, validation_alias="forks_count")
    issues: int = Field(default=0, validation_alias="open_issues")
    last_commit: datetime = Field(default_factory=_utcnow, validation_alias="pushed_at")

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("stars", "forks", "issues", mode="before")
    @classmethod
    def _default_count(cls, value: Any) -> int:
        # bool is a subclass of int but never a count
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return 0

    @field_validator("last_commit", mode="before")
    @classmethod
    def _parse_pushed_at(cls, value: Any) -> datetime:
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        if not isinstance(value, str):
            return _utcnow()
        if value[-1:] in ("Z", "z"):
            value = value[:-1] + "+00:00"
        value = FRACTION_RE.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", value, count=1)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return _utcnow()
        # RFC 3339 timestamps always carry an offset
        if parsed.tzinfo is None:
            return _utcnow()
        return parsed.astimezone(timezone.utc)


class SyncStatus(str, Enum):
    UPDATED = "updated"
    EXTRACTION_FAILED = "extraction_failed"
    TRANSPORT_ERROR = "transport_error"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    PARSE_ERROR = "parse_error"
    PERSIST_FAILED = "persist_failed"


class SyncOutcome(BaseModel):
    """Result of processing a single candidate."""
    model_config = ConfigDict(frozen=True)

    package_name: str
    package_id: int
    status: SyncStatus
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.UPDATED


class SyncReport(BaseModel):
    """Every outcome of one pass, in processing order."""
    outcomes: List[SyncOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return self.total - self.updated
