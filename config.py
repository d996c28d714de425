# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Environment settings, logging setup and technician preference files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from db import Database
from models import SessionPreferences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    db_path: str = field(default_factory=lambda: os.getenv("SPLICEBOOK_DB", "splicebook.db"))
    preferences_path: str = field(
        default_factory=lambda: os.getenv("SPLICEBOOK_PREFERENCES", "splicebook-preferences.yaml")
    )
    log_level: str = field(default_factory=lambda: os.getenv("SPLICEBOOK_LOG_LEVEL", "INFO"))


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or Settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    # basicConfig is a no-op once the root logger has handlers.
    logging.getLogger().setLevel(level)


def open_database(settings: Settings | None = None) -> Database:
    settings = settings or Settings()
    db = Database(settings.db_path)
    db.init_db()
    return db


def load_preferences(path: str | Path) -> SessionPreferences:
    """Read technician preferences; a missing or empty file yields defaults."""
    path = Path(path)
    if not path.exists():
        return SessionPreferences()
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return SessionPreferences()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: preferences must be a mapping")
    return SessionPreferences.model_validate(data)


def save_preferences(prefs: SessionPreferences, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(prefs.model_dump(), sort_keys=True), encoding="utf-8")
    logger.debug("saved preferences to %s", path)
