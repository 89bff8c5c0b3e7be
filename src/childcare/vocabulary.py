"""Load and validate the Procare → normalized vocabulary tables.

The tables live in ``vocabulary.yaml`` alongside this module.  They are
loaded once and cached; call ``reload_vocabulary()`` to re-read from disk.

Usage::

    from src.childcare.vocabulary import get_vocabulary

    vocab = get_vocabulary()
    vocab.diaper_condition("BM & Wet")   # "wet+bm"
    vocab.meal_type("AM Snack")          # "snack"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("procare_sync.vocabulary")

_VOCABULARY_PATH = Path(__file__).parent / "vocabulary.yaml"

DIAPER_CONDITIONS = frozenset({"wet", "dry", "bm", "wet+bm"})
MEAL_TYPES = frozenset({"breakfast", "lunch", "snack", "dinner"})
MEAL_AMOUNTS = frozenset({"all", "most", "some", "none"})


@dataclass
class VocabularyTable:
    """One upstream-label → normalized-value table with its fallback."""

    values: dict[str, str]
    default: str | None = None

    def lookup(self, label: object) -> str | None:
        if not isinstance(label, str):
            return self.default
        return self.values.get(label, self.default)


@dataclass
class Vocabulary:
    """Validated in-memory form of vocabulary.yaml."""

    version: str
    diaper_conditions: VocabularyTable
    meal_types: VocabularyTable
    meal_amounts: VocabularyTable
    default_classroom: str = "Unknown"
    default_learning_activity_name: str = "Unknown"
    _raw: dict = field(default_factory=dict, repr=False)

    def diaper_condition(self, label: object) -> str:
        return self.diaper_conditions.lookup(label) or "wet"

    def meal_type(self, label: object) -> str:
        return self.meal_types.lookup(label) or "snack"

    def meal_amount(self, label: object) -> str | None:
        if not label:
            return None
        return self.meal_amounts.lookup(label)


class ConfigValidationError(ValueError):
    """Raised when vocabulary.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Vocabulary file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _build_table(
    raw: dict,
    section: str,
    allowed: frozenset[str],
    errors: list[str],
    require_default: bool,
) -> VocabularyTable:
    section_raw = raw.get(section)
    if not isinstance(section_raw, dict):
        errors.append(f"'{section}' section is missing or not a mapping")
        return VocabularyTable(values={})

    values_raw = section_raw.get("values") or {}
    if not isinstance(values_raw, dict):
        errors.append(f"{section}.values must be a mapping of label→value")
        values_raw = {}

    values: dict[str, str] = {}
    for label, value in values_raw.items():
        label = str(label)
        if value not in allowed:
            errors.append(
                f"{section}.values.{label} = {value!r} is not one of {sorted(allowed)}"
            )
            continue
        values[label] = value

    default = section_raw.get("default")
    if default is None and require_default:
        errors.append(f"{section}.default is required")
    elif default is not None and default not in allowed:
        errors.append(f"{section}.default = {default!r} is not one of {sorted(allowed)}")
        default = None

    return VocabularyTable(values=values, default=default)


def _validate_and_build(raw: dict) -> Vocabulary:
    """Validate the parsed YAML and construct a Vocabulary.

    Raises:
        ConfigValidationError: If any section is missing or holds values
            outside the normalized vocabularies.
    """
    errors: list[str] = []

    diaper = _build_table(raw, "diaper_conditions", DIAPER_CONDITIONS, errors, True)
    meal_types = _build_table(raw, "meal_types", MEAL_TYPES, errors, True)
    meal_amounts = _build_table(raw, "meal_amounts", MEAL_AMOUNTS, errors, False)

    defaults = raw.get("defaults") or {}

    if errors:
        raise ConfigValidationError(
            f"vocabulary.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    return Vocabulary(
        version=str(raw.get("version", "1.0")),
        diaper_conditions=diaper,
        meal_types=meal_types,
        meal_amounts=meal_amounts,
        default_classroom=str(defaults.get("classroom", "Unknown")),
        default_learning_activity_name=str(
            defaults.get("learning_activity_name", "Unknown")
        ),
        _raw=raw,
    )


def load_vocabulary(path: Path | None = None) -> Vocabulary:
    """Load and validate the vocabulary tables from disk.

    Args:
        path: Override path to YAML. Uses the bundled vocabulary.yaml by default.
    """
    target = path or _VOCABULARY_PATH
    vocabulary = _validate_and_build(_load_yaml(target))
    logger.info("Loaded vocabulary v%s from %s", vocabulary.version, target)
    return vocabulary


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_vocabulary: Vocabulary | None = None
_vocabulary_lock = threading.Lock()


def get_vocabulary() -> Vocabulary:
    """Return the global Vocabulary, loading it on first call. Thread-safe."""
    global _vocabulary
    if _vocabulary is None:
        with _vocabulary_lock:
            if _vocabulary is None:
                _vocabulary = load_vocabulary()
    return _vocabulary


def reload_vocabulary(path: Path | None = None) -> Vocabulary:
    """Re-read the vocabulary from disk and replace the global singleton.

    The new file is validated before the swap; on failure the old tables
    stay in place and the error is re-raised.
    """
    global _vocabulary
    new_vocabulary = load_vocabulary(path)
    with _vocabulary_lock:
        old_version = _vocabulary.version if _vocabulary else "none"
        _vocabulary = new_vocabulary
    logger.info("Reloaded vocabulary: %s -> %s", old_version, new_vocabulary.version)
    return new_vocabulary
