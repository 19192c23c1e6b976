"""SQLAlchemy models for assistants and their knowledge files."""

from sqlalchemy import ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sharkboot.common.models import Base, TimestampMixin, generate_uuid


class AssistantModel(Base, TimestampMixin):
    __tablename__ = "assistants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    openai_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    model: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    # Mirrors the remote tool_resources; sole record of the attached vector store.
    tool_config: Mapped[dict] = mapped_column(JSON, default=dict)


class AssistantFileModel(Base, TimestampMixin):
    __tablename__ = "assistant_files"
    __table_args__ = (
        UniqueConstraint("assistant_id", "openai_file_id", name="uq_assistant_file"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    assistant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assistants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    openai_file_id: Mapped[str] = mapped_column(String(64), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column("bytes", Integer, nullable=False, default=0)
