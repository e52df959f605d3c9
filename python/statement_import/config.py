"""
Import settings.

Settings are read from ``import_settings.yaml`` in the configuration directory
and merged over the defaults below, section by section.
"""

import copy
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

SETTINGS_FILE = "import_settings.yaml"

DEFAULT_SETTINGS = {
    "duplicates": {
        "date_tolerance_days": 3,
        "similar_threshold": 0.8,
        "likely_threshold": 0.6,
        "min_description_length": 3,
        "corpus_limit": 500,
    },
    "categories": {
        "high_threshold": 0.9,
        "medium_threshold": 0.7,
        "low_threshold": 0.5,
        "text_weight": 0.8,
        "amount_weight": 0.2,
        "amount_normalizer": 1000,
        "single_corpus_limit": 500,
        "batch_corpus_limit": 1000,
        "min_description_length": 3,
    },
    "descriptions": {
        "default": "Imported transaction",
        "max_length": 255,
        "noise_prefixes": ["COMPRA", "PAGAMENTO", "TRANSFERENCIA", "SAQUE"],
        "noise_suffixes": ["ITAU", "BANCO"],
    },
    "import": {
        "max_batch_size": 1000,
    },
}


def default_config_dir() -> Path:
    return Path(__file__).parent.parent.parent / "config"


def load_settings(config_dir: Path | str | None = None) -> dict:
    """Load import settings.

    Args:
        config_dir: Directory holding import_settings.yaml

    Returns:
        Settings dictionary with every default section present
    """
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    settings_file = config_dir / SETTINGS_FILE

    if not settings_file.exists():
        logger.debug(f"Settings file not found, using defaults: {settings_file}")
        return settings

    with open(settings_file) as f:
        loaded = yaml.safe_load(f) or {}

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(settings.get(section), dict):
            settings[section].update(values)
        else:
            settings[section] = values

    return settings
