"""Telephony service - PBX resource management, provisioning mocks and IVR TTS"""

import logging
import os
import time
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import config
from ...cache import invalidate_dashboard_stats
from ...models import Extension, IvrMenu, Queue, User
from ...security_utils import generate_short_id, generate_sip_password, strip_html
from ...shared.pagination import total_pages
from ...tts import (
    TTSConfigError,
    TTSProviderError,
    TTSVoiceOptions,
    audio_extension,
    synthesize_tts,
    validate_tts_config,
)
from .repository import TelephonyRepository
from .schemas import (
    ExtensionCreate,
    ExtensionUpdate,
    IvrCreate,
    IvrUpdate,
    QueueCreate,
    QueueUpdate,
)

logger = logging.getLogger(__name__)

MIN_TTS_TEXT_LENGTH = 10


def sip_domain(tenant_id: str) -> str:
    return f"{tenant_id}.gueswi.com"


class TelephonyService:
    """Service layer for telephony business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TelephonyRepository()

    # ==================== EXTENSIONS ====================

    def list_extensions(
        self, user: User, status: Optional[str], q: Optional[str], page: int, page_size: int
    ) -> dict:
        rows, total = self.repo.list_extensions(self.db, user.tenant_id, status, q, page, page_size)
        return {
            "data": rows,
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": total_pages(total, page_size),
        }

    def get_extension(self, user: User, extension_id: str) -> Extension:
        extension = self.repo.get_extension(self.db, user.tenant_id, extension_id)
        if not extension:
            raise HTTPException(status_code=404, detail="Extension not found")
        return extension

    def _ensure_number_free(self, tenant_id: str, number: str, exclude_id: Optional[str] = None):
        existing = self.repo.get_extension_by_number(self.db, tenant_id, number)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=400, detail="Extension number already exists")

    def create_extension(self, user: User, data: ExtensionCreate) -> Extension:
        self._ensure_number_free(user.tenant_id, data.number)
        try:
            extension = self.repo.create_extension(
                self.db,
                tenant_id=user.tenant_id,
                number=data.number,
                user_name=data.userName,
                user_id=data.userId,
                status=data.status or "ACTIVE",
                sip_password=generate_sip_password(),
            )
        except IntegrityError as e:
            # Concurrent insert of the same number
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Extension number already exists") from e

        invalidate_dashboard_stats(user.tenant_id)
        logger.info(f"✅ Extension {extension.number} created for tenant {user.tenant_id}")
        return extension

    def update_extension(self, user: User, extension_id: str, data: ExtensionUpdate) -> Extension:
        extension = self.get_extension(user, extension_id)
        updates = data.model_dump(exclude_unset=True)

        if "number" in updates and updates["number"] != extension.number:
            self._ensure_number_free(user.tenant_id, updates["number"], exclude_id=extension.id)
            extension.number = updates["number"]
        if "userName" in updates:
            extension.user_name = updates["userName"]
        if "userId" in updates:
            extension.user_id = updates["userId"]
        if updates.get("status"):
            extension.status = updates["status"]

        try:
            extension = self.repo.save(self.db, extension)
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Extension number already exists") from e

        invalidate_dashboard_stats(user.tenant_id)
        return extension

    def delete_extension(self, user: User, extension_id: str) -> dict:
        extension = self.get_extension(user, extension_id)
        self.repo.delete_extension(self.db, extension)
        invalidate_dashboard_stats(user.tenant_id)
        logger.info(f"🗑️ Extension {extension.number} deleted for tenant {user.tenant_id}")
        return {"success": True}

    def reset_pin(self, user: User, extension_id: str) -> tuple[Extension, str]:
        extension = self.get_extension(user, extension_id)
        new_pin = generate_sip_password()
        extension.sip_password = new_pin
        return self.repo.save(self.db, extension), new_pin

    # ==================== IVR MENUS ====================

    def list_ivrs(self, user: User) -> list[IvrMenu]:
        return self.repo.list_ivrs(self.db, user.tenant_id)

    def create_ivr(self, user: User, data: IvrCreate) -> IvrMenu:
        ivr = IvrMenu(
            tenant_id=user.tenant_id,
            name=data.name,
            greeting_text=data.greetingText,
            greeting_audio_url=data.greetingAudioUrl,
            options=[option.model_dump() for option in data.options],
            is_active=data.isActive,
        )
        return self.repo.save(self.db, ivr)

    def update_ivr(self, user: User, ivr_id: str, data: IvrUpdate) -> IvrMenu:
        ivr = self.repo.get_ivr(self.db, user.tenant_id, ivr_id)
        if not ivr:
            raise HTTPException(status_code=404, detail="IVR not found")

        updates = data.model_dump(exclude_unset=True)
        if updates.get("name"):
            ivr.name = updates["name"]
        if "greetingText" in updates:
            ivr.greeting_text = updates["greetingText"]
        if "greetingAudioUrl" in updates:
            ivr.greeting_audio_url = updates["greetingAudioUrl"]
        if data.options is not None:
            ivr.options = [option.model_dump() for option in data.options]
        if updates.get("isActive") is not None:
            ivr.is_active = updates["isActive"]
        return self.repo.save(self.db, ivr)

    # ==================== QUEUES ====================

    def list_queues(self, user: User) -> list[Queue]:
        return self.repo.list_queues(self.db, user.tenant_id)

    def create_queue(self, user: User, data: QueueCreate) -> Queue:
        queue = Queue(
            tenant_id=user.tenant_id,
            name=data.name,
            strategy=data.strategy,
            max_wait_time=data.maxWaitTime,
            members=data.members,
        )
        return self.repo.save(self.db, queue)

    def update_queue(self, user: User, queue_id: str, data: QueueUpdate) -> Queue:
        queue = self.repo.get_queue(self.db, user.tenant_id, queue_id)
        if not queue:
            raise HTTPException(status_code=404, detail="Queue not found")

        updates = data.model_dump(exclude_unset=True)
        if updates.get("name"):
            queue.name = updates["name"]
        if updates.get("strategy"):
            queue.strategy = updates["strategy"]
        if updates.get("maxWaitTime") is not None:
            queue.max_wait_time = updates["maxWaitTime"]
        if updates.get("members") is not None:
            queue.members = updates["members"]
        return self.repo.save(self.db, queue)

    # ==================== RECORDINGS ====================

    def list_recordings(
        self,
        user: User,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        page: int,
        page_size: int,
    ) -> dict:
        rows, total = self.repo.list_recordings(
            self.db, user.tenant_id, date_from, date_to, page, page_size
        )
        return {"data": rows, "total": total, "page": page, "pageSize": page_size}

    # ==================== PROVISIONING ====================

    @staticmethod
    def provision_tenant(user: User) -> dict:
        """Mock PBX provisioning for the caller's tenant"""
        pbx_id = f"pbx_{generate_short_id()}"
        logger.info(f"🚀 Provisioned PBX {pbx_id} for tenant {user.tenant_id}")
        return {
            "tenantId": user.tenant_id,
            "pbxId": pbx_id,
            "sipDomain": sip_domain(user.tenant_id),
            "status": "provisioned",
        }

    def provision_extension(self, user: User, data: ExtensionCreate) -> tuple[Extension, dict]:
        extension = self.create_extension(user, data)
        sip_config = {
            "extension": extension.number,
            "sipUsername": extension.number,
            "sipPassword": extension.sip_password,
            "sipServer": sip_domain(user.tenant_id),
        }
        return extension, sip_config

    @staticmethod
    def provision_ivr(user: User, menu: Optional[dict]) -> dict:
        return {
            "ivrId": f"ivr_{generate_short_id()}",
            "tenantId": user.tenant_id,
            "menu": menu or {},
            "status": "active",
        }

    # ==================== TEXT TO SPEECH ====================

    async def generate_tts(self, user: User, text, voice) -> dict:
        """
        Render an IVR greeting to audio under UPLOADS_DIR/ivr.

        Raises:
            HTTPException: 400 on bad input, 500 on provider misconfiguration,
                502 when the provider call fails
        """
        if not isinstance(text, str) or len(text.strip()) < MIN_TTS_TEXT_LENGTH:
            raise HTTPException(
                status_code=400, detail=f"Text must be at least {MIN_TTS_TEXT_LENGTH} characters"
            )
        if not isinstance(voice, dict):
            raise HTTPException(status_code=400, detail="Voice configuration is required")

        voice_options = TTSVoiceOptions(
            gender=voice.get("gender") or "mujer",
            style=voice.get("style") or "amable",
        )

        audio_id = f"ivr_{int(time.time() * 1000)}_{generate_short_id(6)}"
        out_path = os.path.join(config.UPLOADS_DIR, "ivr", f"{audio_id}.{audio_extension()}")

        try:
            result = await synthesize_tts(strip_html(text.strip()), voice_options, out_path)
        except TTSConfigError as e:
            logger.error(f"❌ TTS misconfigured: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e
        except TTSProviderError as e:
            logger.error(f"❌ TTS provider failed for tenant {user.tenant_id}: {e}")
            raise HTTPException(status_code=502, detail=str(e)) from e

        logger.info(f"🔊 IVR audio {audio_id} generated for tenant {user.tenant_id}")
        return {
            "url": result.url,
            "duration": result.duration_sec,
            "voice": voice,
            "text": text,
            "audioId": audio_id,
            "provider": "development" if config.TTS_PROVIDER == "mock" else config.TTS_PROVIDER,
        }

    @staticmethod
    def tts_config() -> dict:
        status = validate_tts_config()
        return {"provider": config.TTS_PROVIDER, **status}
