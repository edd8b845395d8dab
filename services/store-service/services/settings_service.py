"""Store settings service."""
import logging
from typing import Any, Dict
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import DEFAULT_SETTINGS
from errors import ValidationError
from models import Setting

logger = logging.getLogger(__name__)


class SettingsService:
    """Key/value settings stored over built-in defaults."""

    def get_settings(self, db: Session) -> Dict[str, Any]:
        """Stored settings merged over DEFAULT_SETTINGS."""
        stored = {setting.key: setting.value for setting in db.query(Setting).all()}
        return {**DEFAULT_SETTINGS, **stored}

    def put_setting(self, db: Session, key: str, value: Any) -> Setting:
        """
        Create or overwrite one setting.

        Raises:
            ValidationError: If the key is blank
        """
        key = (key or "").strip()
        if not key:
            raise ValidationError("Key is required")

        setting = db.query(Setting).filter(Setting.key == key).first()
        if setting is None:
            setting = Setting(key=key, value=value)
            db.add(setting)
            try:
                db.commit()
            except IntegrityError:
                # Another writer created the key first; overwrite it
                db.rollback()
                setting = db.query(Setting).filter(Setting.key == key).one()
                setting.value = value
                db.commit()
        else:
            setting.value = value
            db.commit()

        db.refresh(setting)
        logger.info("Setting updated", extra={"key": key})
        return setting
