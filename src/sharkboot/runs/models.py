"""SQLAlchemy models for the local run cache and run output files."""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sharkboot.common.models import Base, TimestampMixin, generate_uuid


class AssistantRunModel(Base, TimestampMixin):
    """Cache/index of remote runs: ownership checks and status history.

    OpenAI owns the run state; rows here are only refreshed by explicit
    polls and cancels.
    """

    __tablename__ = "assistant_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    assistant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assistants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    thread_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    run_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="queued")
    # Remote unix timestamp; bounds which messages belong to this run.
    remote_created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class AssistantRunFileModel(Base, TimestampMixin):
    """Code-interpreter output file produced by a cached run.

    Rows are recorded when a poll sees the run completed; downloads are
    only served for file ids listed here.
    """

    __tablename__ = "assistant_run_files"
    __table_args__ = (
        UniqueConstraint("run_id", "file_id", name="uq_run_file"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    assistant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assistants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    run_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    file_id: Mapped[str] = mapped_column(String(64), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column("bytes", Integer, nullable=False, default=0)
