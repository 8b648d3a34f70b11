"""Build run ORM model.

One BuildRun row is written per orchestration cycle, whether it ended in a
skipped build, a successful publish, or a failure.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from localstack_build.db import Base
from localstack_build.types import BuildStatus


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class BuildRun(Base):
    """ORM model for build cycle records.

    Attributes:
        id: Primary key.
        device: Device codename.
        status: Run status (pending, running, skipped, succeeded, failed).
        force_build: Whether the build was forced.
        requested_at: Timestamp when the cycle started.
        started_at: Timestamp when the container build started.
        finished_at: Timestamp when the cycle finished.
        reasons: Decision reasons (JSON list).
        versions: Resolved component versions (JSON object).
        error_category: Failure category if the run failed.
        error_code: Failure code if the run failed.
        error_message: Error message if the run failed.
    """

    __tablename__ = "build_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Status and timing
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BuildStatus.PENDING.value, index=True
    )
    force_build: Mapped[bool] = mapped_column(nullable=False, default=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Decision inputs and outputs
    reasons: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    versions: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)

    # Error tracking
    error_category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_build_runs_device_status", "device", "status"),)

    def __repr__(self) -> str:
        """Return string representation of BuildRun."""
        return (
            f"<BuildRun(id={self.id}, device='{self.device}', "
            f"status='{self.status}')>"
        )

    def mark_running(self) -> None:
        """Mark this run as building."""
        self.status = BuildStatus.RUNNING.value
        self.started_at = datetime.now()

    def mark_skipped(self) -> None:
        """Mark this run as not requiring a build."""
        self.status = BuildStatus.SKIPPED.value
        self.finished_at = datetime.now()

    def mark_succeeded(self) -> None:
        """Mark this run as succeeded."""
        self.status = BuildStatus.SUCCEEDED.value
        self.finished_at = datetime.now()

    def mark_failed(
        self,
        category: str | None = None,
        code: str | None = None,
        message: str | None = None,
    ) -> None:
        """Mark this run as failed.

        Args:
            category: Failure category.
            code: Failure code.
            message: Error message details.
        """
        self.status = BuildStatus.FAILED.value
        self.finished_at = datetime.now()
        self.error_category = category
        self.error_code = code
        self.error_message = message

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "device": self.device,
            "status": self.status,
            "force_build": self.force_build,
            "requested_at": _isoformat(self.requested_at),
            "started_at": _isoformat(self.started_at),
            "finished_at": _isoformat(self.finished_at),
            "reasons": list(self.reasons or []),
            "versions": dict(self.versions or {}),
            "error_category": self.error_category,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


__all__ = ["BuildRun"]
