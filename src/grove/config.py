"""Grove configuration loader.

Loads settings from ~/.grove/config.json (or $GROVE_CONFIG) and provides
the cadence threshold table used to derive relationship health.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .contacts.health import DEFAULT_THRESHOLDS, CadenceThresholds
from .contacts.models import Cadence

logger = logging.getLogger(__name__)

GROVE_HOME = Path.home() / ".grove"
DEFAULT_CONFIG_PATH = GROVE_HOME / "config.json"

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_VISION_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"
DEFAULT_INTERACTION_LIMIT = 20


@dataclass
class GroveConfig:
    """Configuration for a grove installation.

    Attributes:
        db_path: SQLite database file.
        log_dir: Directory for the JSONL event log.
        extraction_model: Model used to extract facts from notes.
        vision_model: Model used to extract facts from images.
        briefing_model: Model used to write briefings.
        default_cadence: Cadence given to contacts created by ingestion.
        briefing_interaction_limit: Most recent interactions handed to briefings.
        cadence_thresholds: Due/overdue days per cadence.
    """

    db_path: Path | None = None
    log_dir: Path | None = None
    extraction_model: str = DEFAULT_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    briefing_model: str = DEFAULT_MODEL
    default_cadence: Cadence = Cadence.REGULARLY
    briefing_interaction_limit: int = DEFAULT_INTERACTION_LIMIT
    cadence_thresholds: dict[Cadence, CadenceThresholds] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = GROVE_HOME / "grove.db"

        if self.log_dir is None:
            self.log_dir = GROVE_HOME / "logs"

        if self.briefing_interaction_limit < 1:
            raise ValueError("briefing_interaction_limit must be at least 1")

        # Cadences missing from a partial table keep their defaults
        for cadence, thresholds in DEFAULT_THRESHOLDS.items():
            self.cadence_thresholds.setdefault(cadence, thresholds)

    def thresholds_for(self, cadence: Cadence) -> CadenceThresholds:
        """Get the thresholds for a cadence."""
        return self.cadence_thresholds[cadence]


def config_path_from_env() -> Path:
    """Config path from $GROVE_CONFIG, or the default location."""
    env_path = os.getenv("GROVE_CONFIG")
    return Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> GroveConfig:
    """Load GroveConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "db_path": "~/.grove/grove.db",
      "models": {"extraction": "...", "vision": "...", "briefing": "..."},
      "default_cadence": "REGULARLY",
      "briefing": {"interaction_limit": 20},
      "cadence": {
        "OFTEN": {"due_days": 10, "overdue_days": 14}
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses config_path_from_env() if None.

    Returns:
        GroveConfig instance with loaded values.
    """
    path = config_path or config_path_from_env()

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return GroveConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return GroveConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return GroveConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return GroveConfig()

    return _parse_config(data)


def _parse_thresholds(data: Any) -> dict[Cadence, CadenceThresholds]:
    """Parse the cadence table, skipping unknown or invalid entries."""
    thresholds = dict(DEFAULT_THRESHOLDS)
    if not isinstance(data, dict):
        return thresholds

    for name, values in data.items():
        try:
            cadence = Cadence(str(name).upper())
        except ValueError:
            logger.warning("Unknown cadence in config: %s", name)
            continue

        if not isinstance(values, dict):
            continue

        try:
            thresholds[cadence] = CadenceThresholds(
                due_days=int(values["due_days"]),
                overdue_days=int(values["overdue_days"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid thresholds for %s: %s", cadence.value, e)

    return thresholds


def _parse_config(data: dict[str, Any]) -> GroveConfig:
    """Parse config dictionary into GroveConfig.

    Args:
        data: Parsed JSON data.

    Returns:
        GroveConfig instance.
    """
    db_path: Path | None = None
    if isinstance(data.get("db_path"), str):
        db_path = Path(data["db_path"]).expanduser()

    log_dir: Path | None = None
    if isinstance(data.get("log_dir"), str):
        log_dir = Path(data["log_dir"]).expanduser()

    models = data.get("models", {})
    if not isinstance(models, dict):
        models = {}

    default_cadence = Cadence.REGULARLY
    try:
        default_cadence = Cadence(str(data.get("default_cadence", "REGULARLY")).upper())
    except ValueError:
        logger.warning("Invalid default_cadence, using REGULARLY")

    briefing = data.get("briefing", {})
    if not isinstance(briefing, dict):
        briefing = {}
    limit = briefing.get("interaction_limit", DEFAULT_INTERACTION_LIMIT)
    if not isinstance(limit, int) or limit < 1:
        limit = DEFAULT_INTERACTION_LIMIT

    return GroveConfig(
        db_path=db_path,
        log_dir=log_dir,
        extraction_model=str(models.get("extraction", DEFAULT_MODEL)),
        vision_model=str(models.get("vision", DEFAULT_VISION_MODEL)),
        briefing_model=str(models.get("briefing", DEFAULT_MODEL)),
        default_cadence=default_cadence,
        briefing_interaction_limit=limit,
        cadence_thresholds=_parse_thresholds(data.get("cadence")),
    )


def save_config(config: GroveConfig, config_path: Path | None = None) -> None:
    """Save GroveConfig to a JSON file.

    Only values that differ from the defaults are written.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses config_path_from_env() if None.
    """
    path = config_path or config_path_from_env()

    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {}
    defaults = GroveConfig()

    if config.db_path != defaults.db_path:
        data["db_path"] = str(config.db_path)

    if config.log_dir != defaults.log_dir:
        data["log_dir"] = str(config.log_dir)

    models: dict[str, str] = {}
    if config.extraction_model != DEFAULT_MODEL:
        models["extraction"] = config.extraction_model
    if config.vision_model != DEFAULT_VISION_MODEL:
        models["vision"] = config.vision_model
    if config.briefing_model != DEFAULT_MODEL:
        models["briefing"] = config.briefing_model
    if models:
        data["models"] = models

    if config.default_cadence != Cadence.REGULARLY:
        data["default_cadence"] = config.default_cadence.value

    if config.briefing_interaction_limit != DEFAULT_INTERACTION_LIMIT:
        data["briefing"] = {"interaction_limit": config.briefing_interaction_limit}

    cadence = {
        c.value: {"due_days": t.due_days, "overdue_days": t.overdue_days}
        for c, t in config.cadence_thresholds.items()
        if DEFAULT_THRESHOLDS.get(c) != t
    }
    if cadence:
        data["cadence"] = cadence

    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
