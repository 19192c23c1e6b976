"""SQLAlchemy models for WhatsApp Business numbers."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sharkboot.common.models import Base, TimestampMixin, generate_uuid

DEFAULT_WELCOME_MESSAGE = "Hi! I'm your virtual assistant. How can I help you?"


class WhatsAppNumberModel(Base, TimestampMixin):
    __tablename__ = "whatsapp_numbers"
    __table_args__ = (
        UniqueConstraint("client_id", "phone_number_id", name="uq_whatsapp_client_phone"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phone_number_id: Mapped[str] = mapped_column(String(64), nullable=False)
    waba_id: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone_number: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    # At most one number per assistant; checked before write, not by an index.
    assistant_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("assistants.id", ondelete="SET NULL"), nullable=True, index=True
    )


class WhatsAppCredentialModel(Base, TimestampMixin):
    __tablename__ = "whatsapp_credentials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    waba_id: Mapped[str] = mapped_column(String(64), nullable=False)
    phone_number_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)


class AssistantWhatsAppConfigModel(Base, TimestampMixin):
    __tablename__ = "assistant_whatsapp_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    assistant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assistants.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    whatsapp_number_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("whatsapp_numbers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    auto_reply_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    welcome_message: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_WELCOME_MESSAGE)
    response_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
