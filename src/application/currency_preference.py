import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from src.domain.currency import CurrencyConversionEngine, is_supported
from src.infrastructure.db.session import SessionLocal, get_db_session
from src.infrastructure.repositories.preference_repository import PreferenceRepository

logger = logging.getLogger(__name__)

PREFERRED_CURRENCY_KEY = "booknow_currency"


class CurrencyPreferenceService:
    """
    Process-wide preferred display currency.

    Initialised once: the persisted value if it is supported,
    otherwise the locale-derived default. Every accepted change
    is written to the store before it becomes visible.
    """

    def __init__(
        self,
        engine: CurrencyConversionEngine,
        session_factory: sessionmaker = SessionLocal,
        locale_tag: Optional[str] = None,
    ):
        self.engine = engine
        self._session_factory = session_factory
        self._currency = self._load_or_detect(locale_tag)

    def _load_or_detect(self, locale_tag: Optional[str]) -> str:
        try:
            with get_db_session(self._session_factory) as db:
                stored = PreferenceRepository(db).get(PREFERRED_CURRENCY_KEY)
        except SQLAlchemyError:
            logger.warning("Preference store unavailable; detecting currency from locale.")
            stored = None

        if is_supported(stored):
            return stored

        detected = self.engine.detect_preferred_currency(locale_tag)
        logger.info("No stored currency preference; detected %s.", detected)
        return detected

    def get(self) -> str:
        return self._currency

    def set(self, code: str) -> bool:
        if not is_supported(code):
            logger.info("Ignoring unsupported currency preference %s.", code)
            return False

        try:
            with get_db_session(self._session_factory) as db:
                PreferenceRepository(db).set(PREFERRED_CURRENCY_KEY, code)
        except SQLAlchemyError:
            logger.warning("Could not persist currency preference %s; keeping it for this process.", code)

        self._currency = code
        return True
