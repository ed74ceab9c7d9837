from __future__ import annotations

import logging
import os
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from swrfph.app.core.config import get_settings
from swrfph.app.core.logging_config import configure_logging
from swrfph.app.core.security import hash_password
from swrfph.app.db.session import SessionLocal
from swrfph.app.db.models.models_v1 import Medicine, Setting, User
from swrfph.app.db.models.core_types import Role, SettingCategory

logger = logging.getLogger(__name__)

SEED_MEDICINES = [
    ("Paracetamol 500mg", "Analgesic and antipyretic tablets", "Analgesics", Decimal("2.50"), 500),
    ("Amoxicillin 250mg", "Broad spectrum antibiotic capsules", "Antibiotics", Decimal("8.75"), 200),
    ("Ibuprofen 400mg", "Anti-inflammatory tablets", "Analgesics", Decimal("3.20"), 300),
    ("Metformin 850mg", "Type 2 diabetes management", "Antidiabetics", Decimal("5.40"), 40),
    ("Oral Rehydration Salts", "Electrolyte replacement sachets", "Rehydration", Decimal("0.90"), 1000),
    ("Insulin Glargine", "Long acting insulin pen", "Antidiabetics", Decimal("45.00"), 15),
]

SEED_SETTINGS = [
    ("org_name", "SWRFPH Central Pharmacy", SettingCategory.organization),
    ("email_alerts", "true", SettingCategory.notification),
    ("sms_alerts", "false", SettingCategory.notification),
    ("language", "en", SettingCategory.general),
    ("timezone", "UTC", SettingCategory.general),
]


def _ensure_user(db: Session, *, email: str, name: str, password: str, role: Role, rounds: int) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, name=name, password_hash=hash_password(password, rounds), role=role)
        db.add(user)
        db.commit()
    return user


def run_seed(db: Session | None = None) -> None:
    """Idempotent: existing rows (matched by email, name or key) are left alone."""
    settings = get_settings()
    own_session = db is None
    db = db or SessionLocal()
    try:
        _ensure_user(
            db,
            email=os.getenv("SEED_ADMIN_EMAIL", "admin@swrfph.local"),
            name="Administrator",
            password=os.getenv("SEED_ADMIN_PASSWORD", "Admin1234!"),
            role=Role.admin,
            rounds=settings.bcrypt_rounds,
        )
        _ensure_user(
            db,
            email=os.getenv("SEED_PROVIDER_EMAIL", "provider@swrfph.local"),
            name="Demo Provider",
            password=os.getenv("SEED_PROVIDER_PASSWORD", "Provider1234!"),
            role=Role.provider,
            rounds=settings.bcrypt_rounds,
        )

        for name, description, category, price, quantity in SEED_MEDICINES:
            if not db.scalar(select(Medicine).where(Medicine.name == name)):
                db.add(Medicine(name=name, description=description, category=category, price=price, quantity=quantity))

        for key, value, category in SEED_SETTINGS:
            if not db.scalar(select(Setting).where(Setting.key == key)):
                db.add(Setting(key=key, value=value, category=category))

        db.commit()
        logger.info("Seed complete: users, %d medicines, %d settings", len(SEED_MEDICINES), len(SEED_SETTINGS))
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    run_seed()
