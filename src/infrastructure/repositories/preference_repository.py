# src/infrastructure/repositories/preference_repository.py

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.infrastructure.db.models import ClientPreference


class PreferenceRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> str | None:
        stmt = select(ClientPreference).where(ClientPreference.key == key)
        preference = self.db.execute(stmt).scalar_one_or_none()
        return preference.value if preference else None

    def set(self, key: str, value: str) -> None:
        stmt = select(ClientPreference).where(ClientPreference.key == key)
        preference = self.db.execute(stmt).scalar_one_or_none()

        if preference:
            preference.value = value
            return

        self.db.add(ClientPreference(key=key, value=value))
