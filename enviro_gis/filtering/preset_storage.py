"""
Filter Preset Storage Module

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Durable client-side storage for filter presets. The whole
preset list is one flat JSON array under a fixed logical key
("filterPresets"), fully overwritten on every mutation.

Storage Format:
- {directory}/{storage_key}.json: JSON array of preset dicts
- {directory}/{storage_key}.lock: filelock for cross-process coordination

Failure Policy:
- Corrupt JSON (or a non-array document) is logged and reset to empty
- Individual malformed entries are skipped
- Lock timeouts are logged; load returns empty, save reports False

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import filelock

from enviro_gis.config_types import CONFIG, PresetConfig
from enviro_gis.filtering.criteria import FilterPreset

logger = logging.getLogger(__name__)


class PresetStorage:
    """
    JSON-file preset store with per-file locking.

    Example:
        storage = PresetStorage("/tmp/presets")
        presets = storage.load()
        storage.save(presets + [new_preset])
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        storage_key: str = CONFIG.presets.storage_key,
        lock_timeout_s: float = CONFIG.presets.lock_timeout_s,
    ) -> None:
        self.directory = Path(directory or CONFIG.presets.directory)
        self.storage_key = storage_key
        self.lock_timeout_s = lock_timeout_s
        self.directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: PresetConfig) -> "PresetStorage":
        return cls(config.directory, config.storage_key, config.lock_timeout_s)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.storage_key}.json"

    @property
    def lock_path(self) -> Path:
        return self.directory / f"{self.storage_key}.lock"

    def _lock(self) -> filelock.FileLock:
        return filelock.FileLock(str(self.lock_path), timeout=self.lock_timeout_s)

    def load(self) -> List[FilterPreset]:
        """Read all presets. Corrupt storage is reset to an empty array."""
        try:
            with self._lock():
                if not self.path.exists():
                    return []
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        raw = json.load(f)
                    if not isinstance(raw, list):
                        raise ValueError(f"expected a JSON array, got {type(raw).__name__}")
                except ValueError as e:
                    logger.warning(f"⚠️ Corrupted preset storage {self.path.name}, resetting: {e}")
                    self._write([])
                    return []
        except filelock.Timeout:
            logger.warning(f"⏱️ Preset storage lock timeout after {self.lock_timeout_s}s")
            return []

        presets = []
        for entry in raw:
            try:
                presets.append(FilterPreset.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ Skipping malformed preset: {e}")
        return presets

    def save(self, presets: List[FilterPreset]) -> bool:
        """Overwrite storage with the full preset list."""
        try:
            with self._lock():
                self._write([preset.to_dict() for preset in presets])
        except filelock.Timeout:
            logger.error(f"❌ Could not save presets: lock timeout after {self.lock_timeout_s}s")
            return False
        logger.debug(f"💾 Saved {len(presets)} filter presets")
        return True

    def _write(self, entries: list) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)
