"""Demo workspace data for freshly bootstrapped tenants"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from ...models import Extension, IvrMenu, Queue, Recording, utc_now
from ...security_utils import generate_sip_password

logger = logging.getLogger(__name__)

DEMO_EXTENSIONS = [
    ("1001", "Recepción", "ACTIVE"),
    ("1002", "Ventas - Juan", "ACTIVE"),
    ("1003", "Soporte - María", "ACTIVE"),
    ("1004", "Gerencia", "ACTIVE"),
    ("1005", "Ext. Libre 1", "INACTIVE"),
    ("1006", "Ext. Libre 2", "INACTIVE"),
    ("1007", "Ext. Libre 3", "INACTIVE"),
    ("1008", "Ext. Libre 4", "INACTIVE"),
]

DEMO_IVR_OPTIONS = [
    {"key": "1", "action": "queue", "target": "ventas", "description": "Queue Ventas"},
    {"key": "2", "action": "queue", "target": "soporte", "description": "Queue Soporte"},
    {"key": "default", "action": "ai_agent", "target": "demo", "description": "Agente IA demo"},
]

DEMO_RECORDING_URL = "/public/samples/demo-call.mp3"

# (call_id, age, duration_sec, size_bytes)
DEMO_RECORDINGS = [
    ("demo-call-001", timedelta(days=2), 145, 2345678),
    ("demo-call-002", timedelta(days=1), 230, 3456789),
    ("demo-call-003", timedelta(hours=3), 89, 1234567),
]


def seed_demo_data(db: Session, tenant_id: str) -> None:
    """Add demo extensions, IVR, queues and recordings to a tenant (no commit)"""
    logger.info(f"🌱 Seeding demo data for tenant {tenant_id}")

    for number, user_name, status in DEMO_EXTENSIONS:
        db.add(
            Extension(
                tenant_id=tenant_id,
                number=number,
                user_name=user_name,
                status=status,
                sip_password=generate_sip_password(),
            )
        )

    db.add(
        IvrMenu(
            tenant_id=tenant_id,
            name="Principal",
            greeting_text="Bienvenido. Para ventas marque 1, para soporte marque 2.",
            options=[dict(option) for option in DEMO_IVR_OPTIONS],
            is_active=True,
        )
    )

    db.add(Queue(tenant_id=tenant_id, name="Ventas", strategy="ringall", members=["1002"]))
    db.add(Queue(tenant_id=tenant_id, name="Soporte", strategy="ringall", members=["1003"]))

    now = utc_now()
    for call_id, age, duration_sec, size_bytes in DEMO_RECORDINGS:
        db.add(
            Recording(
                tenant_id=tenant_id,
                call_id=call_id,
                started_at=now - age,
                duration_sec=duration_sec,
                size_bytes=size_bytes,
                url=DEMO_RECORDING_URL,
            )
        )

    db.flush()
    logger.info(f"✅ Demo data seeded for tenant {tenant_id}")


def reset_demo_data(db: Session, tenant_id: str) -> None:
    """Wipe the tenant's telephony rows and seed them again"""
    logger.info(f"🔄 Resetting demo data for tenant {tenant_id}")
    db.query(Recording).filter(Recording.tenant_id == tenant_id).delete(synchronize_session=False)
    db.query(Queue).filter(Queue.tenant_id == tenant_id).delete(synchronize_session=False)
    db.query(IvrMenu).filter(IvrMenu.tenant_id == tenant_id).delete(synchronize_session=False)
    db.query(Extension).filter(Extension.tenant_id == tenant_id).delete(synchronize_session=False)
    seed_demo_data(db, tenant_id)
    db.commit()
