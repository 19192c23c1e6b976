"""WhatsApp number registry: registration, plan quotas, assistant binding."""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantModel
from sharkboot.assistants.service import AssistantService
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import (
    ConflictError,
    NotFoundError,
    PlanLimitError,
    ValidationError,
)
from sharkboot.common.security import Principal
from sharkboot.remote.graph_client import GraphClient
from sharkboot.tenants.service import PlanInfo, TenantService
from sharkboot.whatsapp.models import (
    AssistantWhatsAppConfigModel,
    WhatsAppCredentialModel,
    WhatsAppNumberModel,
)

logger = logging.getLogger(__name__)


class WhatsAppService:
    """Tenant-scoped WhatsApp numbers and their assistant assignments."""

    def __init__(
        self,
        settings: SharkbootSettings,
        graph_client: GraphClient,
        tenant_service: TenantService,
        assistant_service: AssistantService,
    ):
        self.settings = settings
        self.graph = graph_client
        self.tenants = tenant_service
        self.assistants = assistant_service

    async def get_number(
        self, session: AsyncSession, client_id: str, number_id: str,
    ) -> WhatsAppNumberModel:
        result = await session.execute(
            select(WhatsAppNumberModel).where(
                WhatsAppNumberModel.id == number_id,
                WhatsAppNumberModel.client_id == client_id,
            )
        )
        number = result.scalar_one_or_none()
        if number is None:
            raise NotFoundError("WhatsApp number not found")
        return number

    async def list_numbers(
        self, session: AsyncSession, client_id: str,
    ) -> tuple[list[tuple[WhatsAppNumberModel, Optional[str]]], PlanInfo]:
        """Numbers with their assistant name, plus the plan quota."""
        result = await session.execute(
            select(WhatsAppNumberModel, AssistantModel.name)
            .outerjoin(AssistantModel, AssistantModel.id == WhatsAppNumberModel.assistant_id)
            .where(WhatsAppNumberModel.client_id == client_id)
            .order_by(WhatsAppNumberModel.created_at.desc())
        )
        numbers = [(row[0], row[1]) for row in result.all()]
        return numbers, await self.tenants.get_plan_info(session, client_id)

    async def register_number(
        self,
        session: AsyncSession,
        principal: Principal,
        waba_id: Optional[str],
        phone_number_id: Optional[str],
        display_name: Optional[str],
    ) -> WhatsAppNumberModel:
        missing = [
            field for field, value in (
                ("waba_id", waba_id),
                ("phone_number_id", phone_number_id),
                ("display_name", display_name),
            ) if not value
        ]
        if missing:
            raise ValidationError("Missing required fields", details={"missing": missing})

        client_id = principal.client_id
        plan = await self.tenants.get_plan_info(session, client_id)
        if not plan.can_add:
            raise PlanLimitError("WhatsApp number limit reached", details=plan.as_dict())

        dup = await session.execute(
            select(WhatsAppNumberModel.id).where(
                WhatsAppNumberModel.client_id == client_id,
                WhatsAppNumberModel.phone_number_id == phone_number_id,
            )
        )
        if dup.scalar_one_or_none() is not None:
            raise ConflictError("WhatsApp number already registered")

        access_token = await self.tenants.get_facebook_token(session, principal.user_id)
        info = (await self.graph.get_phone_number(access_token, phone_number_id)).unwrap()
        if info.get("code_verification_status") != "VERIFIED":
            raise ValidationError(
                "The number must be verified before registering it",
                details={"status": info.get("code_verification_status")},
            )

        number = WhatsAppNumberModel(
            client_id=client_id,
            phone_number_id=phone_number_id,
            waba_id=waba_id,
            display_name=display_name,
            phone_number=info.get("display_phone_number") or "",
            status="active",
        )
        session.add(number)
        session.add(WhatsAppCredentialModel(
            client_id=client_id,
            waba_id=waba_id,
            phone_number_id=phone_number_id,
            access_token=access_token,
        ))
        await session.flush()
        logger.info(
            "WhatsApp number registered",
            extra={"number_id": number.id, "phone_number_id": phone_number_id, "client_id": client_id},
        )
        return number

    async def _get_config(
        self, session: AsyncSession, number_id: str,
    ) -> AssistantWhatsAppConfigModel | None:
        result = await session.execute(
            select(AssistantWhatsAppConfigModel).where(
                AssistantWhatsAppConfigModel.whatsapp_number_id == number_id,
            )
        )
        return result.scalar_one_or_none()

    async def assign(
        self, session: AsyncSession, client_id: str, number_id: str, assistant_id: Optional[str],
    ) -> tuple[WhatsAppNumberModel, AssistantModel, AssistantWhatsAppConfigModel]:
        """Bind an assistant to a number; an assistant serves one number at a time."""
        if not assistant_id:
            raise ValidationError("assistant_id is required")

        number = await self.get_number(session, client_id, number_id)
        assistant = await self.assistants.get_owned(session, client_id, assistant_id)

        existing = await session.execute(
            select(WhatsAppNumberModel.id).where(
                WhatsAppNumberModel.assistant_id == assistant_id,
                WhatsAppNumberModel.id != number_id,
            )
        )
        if existing.first() is not None:
            raise ConflictError("Assistant is already assigned to another WhatsApp number")

        # A config left by the number's previous assistant no longer applies.
        await session.execute(
            delete(AssistantWhatsAppConfigModel).where(
                AssistantWhatsAppConfigModel.whatsapp_number_id == number.id,
                AssistantWhatsAppConfigModel.assistant_id != assistant_id,
            )
        )
        number.assistant_id = assistant_id

        result = await session.execute(
            select(AssistantWhatsAppConfigModel).where(
                AssistantWhatsAppConfigModel.assistant_id == assistant_id,
            )
        )
        config = result.scalar_one_or_none()
        if config is None:
            config = AssistantWhatsAppConfigModel(
                assistant_id=assistant_id, whatsapp_number_id=number.id,
            )
            session.add(config)
        else:
            config.whatsapp_number_id = number.id
        await session.flush()
        logger.info(
            "Assistant assigned to WhatsApp number",
            extra={"assistant_id": assistant_id, "number_id": number.id},
        )
        return number, assistant, config

    async def unassign(
        self, session: AsyncSession, client_id: str, number_id: str,
    ) -> str:
        """Unbind the number's assistant. Returns the previous assistant id."""
        number = await self.get_number(session, client_id, number_id)
        if not number.assistant_id:
            raise ValidationError("No assistant assigned to this number")
        previous = number.assistant_id
        number.assistant_id = None
        await session.execute(
            delete(AssistantWhatsAppConfigModel).where(
                AssistantWhatsAppConfigModel.whatsapp_number_id == number.id,
            )
        )
        await session.flush()
        return previous

    async def get_config(
        self, session: AsyncSession, client_id: str, number_id: str,
    ) -> dict[str, Any]:
        number = await self.get_number(session, client_id, number_id)
        assistant_name = None
        if number.assistant_id:
            assistant = await session.get(AssistantModel, number.assistant_id)
            assistant_name = assistant.name if assistant else None
        config = await self._get_config(session, number.id)
        return {
            "id": number.id,
            "display_name": number.display_name,
            "phone_number": number.phone_number,
            "status": number.status,
            "assistant_id": number.assistant_id,
            "assistant_name": assistant_name,
            "auto_reply_enabled": config.auto_reply_enabled if config else None,
            "welcome_message": config.welcome_message if config else None,
            "response_delay_seconds": config.response_delay_seconds if config else None,
        }

    async def update_config(
        self,
        session: AsyncSession,
        client_id: str,
        number_id: str,
        auto_reply_enabled: Optional[bool] = None,
        welcome_message: Optional[str] = None,
        response_delay_seconds: Optional[int] = None,
    ) -> AssistantWhatsAppConfigModel:
        number = await self.get_number(session, client_id, number_id)
        if not number.assistant_id:
            raise ValidationError("Assign an assistant before configuring the number")

        config = await self._get_config(session, number.id)
        if config is None:
            config = AssistantWhatsAppConfigModel(
                assistant_id=number.assistant_id, whatsapp_number_id=number.id,
            )
            session.add(config)
        if auto_reply_enabled is not None:
            config.auto_reply_enabled = auto_reply_enabled
        if welcome_message is not None:
            config.welcome_message = welcome_message
        if response_delay_seconds is not None:
            config.response_delay_seconds = response_delay_seconds
        await session.flush()
        return config

    async def delete_number(
        self, session: AsyncSession, client_id: str, number_id: str,
    ) -> None:
        number = await self.get_number(session, client_id, number_id)
        phone_number_id = number.phone_number_id
        await session.execute(
            delete(AssistantWhatsAppConfigModel).where(
                AssistantWhatsAppConfigModel.whatsapp_number_id == number.id,
            )
        )
        await session.execute(
            delete(WhatsAppCredentialModel).where(
                WhatsAppCredentialModel.client_id == client_id,
                WhatsAppCredentialModel.phone_number_id == phone_number_id,
            )
        )
        await session.delete(number)
        await session.flush()
        logger.info(
            "WhatsApp number deleted",
            extra={"number_id": number_id, "phone_number_id": phone_number_id},
        )

    async def available_assistants(
        self, session: AsyncSession, client_id: str,
    ) -> list[dict[str, Any]]:
        result = await session.execute(
            select(AssistantModel, WhatsAppNumberModel.id)
            .outerjoin(WhatsAppNumberModel, WhatsAppNumberModel.assistant_id == AssistantModel.id)
            .where(AssistantModel.client_id == client_id)
            .order_by(AssistantModel.created_at.desc())
        )
        return [
            {
                "id": assistant.id,
                "name": assistant.name,
                "instructions": assistant.instructions,
                "created_at": assistant.created_at,
                "assigned_to_whatsapp": number_id,
                "available": number_id is None,
            }
            for assistant, number_id in result.all()
        ]
