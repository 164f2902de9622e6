"""Telephony repository - Database operations for PBX resources"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Extension, IvrMenu, Queue, Recording
from ...shared.pagination import paginate


class TelephonyRepository:
    """Repository for extension, IVR, queue and recording operations"""

    # ==================== EXTENSIONS ====================

    @staticmethod
    def list_extensions(
        db: Session,
        tenant_id: str,
        status: Optional[str],
        q: Optional[str],
        page: int,
        page_size: int,
    ) -> tuple[list[Extension], int]:
        query = db.query(Extension).filter(Extension.tenant_id == tenant_id)
        if status:
            query = query.filter(Extension.status == status)
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Extension.number).like(pattern),
                    func.lower(Extension.user_name).like(pattern),
                )
            )
        return paginate(query.order_by(Extension.created_at.asc(), Extension.number.asc()), page, page_size)

    @staticmethod
    def get_extension(db: Session, tenant_id: str, extension_id: str) -> Optional[Extension]:
        return (
            db.query(Extension)
            .filter(Extension.id == extension_id, Extension.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_extension_by_number(db: Session, tenant_id: str, number: str) -> Optional[Extension]:
        return (
            db.query(Extension)
            .filter(Extension.tenant_id == tenant_id, Extension.number == number)
            .first()
        )

    @staticmethod
    def create_extension(db: Session, **data) -> Extension:
        extension = Extension(**data)
        db.add(extension)
        db.commit()
        db.refresh(extension)
        return extension

    @staticmethod
    def delete_extension(db: Session, extension: Extension) -> None:
        db.delete(extension)
        db.commit()

    # ==================== IVR MENUS ====================

    @staticmethod
    def list_ivrs(db: Session, tenant_id: str) -> list[IvrMenu]:
        return (
            db.query(IvrMenu)
            .filter(IvrMenu.tenant_id == tenant_id)
            .order_by(IvrMenu.created_at.asc())
            .all()
        )

    @staticmethod
    def get_ivr(db: Session, tenant_id: str, ivr_id: str) -> Optional[IvrMenu]:
        return db.query(IvrMenu).filter(IvrMenu.id == ivr_id, IvrMenu.tenant_id == tenant_id).first()

    # ==================== QUEUES ====================

    @staticmethod
    def list_queues(db: Session, tenant_id: str) -> list[Queue]:
        return db.query(Queue).filter(Queue.tenant_id == tenant_id).order_by(Queue.created_at.asc()).all()

    @staticmethod
    def get_queue(db: Session, tenant_id: str, queue_id: str) -> Optional[Queue]:
        return db.query(Queue).filter(Queue.id == queue_id, Queue.tenant_id == tenant_id).first()

    # ==================== RECORDINGS ====================

    @staticmethod
    def list_recordings(
        db: Session,
        tenant_id: str,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        page: int,
        page_size: int,
    ) -> tuple[list[Recording], int]:
        query = db.query(Recording).filter(Recording.tenant_id == tenant_id)
        if date_from:
            query = query.filter(Recording.started_at >= date_from)
        if date_to:
            query = query.filter(Recording.started_at <= date_to)
        return paginate(query.order_by(Recording.started_at.desc()), page, page_size)

    # ==================== COMMON ====================

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
