"""Configuration helpers for the forwarding engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

# Lowest delay allowed between two automatic reconnection attempts.
MIN_BACKOFF_FLOOR = 1.0


@dataclass(frozen=True)
class EngineSettings:
    """Typed wrapper around the engine settings dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def label(self, name: str) -> str:
        labels = self.raw.get("labels", {})
        return str(labels.get(name, ""))

    def retry(self, key: str, default: Any = None) -> Any:
        retry = self.raw.get("retry", {})
        return retry.get(key, default)

    @property
    def backoff_floor(self) -> float:
        return max(MIN_BACKOFF_FLOOR, float(self.retry("backoff_floor", MIN_BACKOFF_FLOOR)))

    def backoff_delay(self, attempt: int) -> float:
        """Return the delay before automatic retry number ``attempt`` (1-based)."""

        floor = self.backoff_floor
        ceiling = max(floor, float(self.retry("backoff_max", floor)))
        return min(ceiling, floor * (2 ** max(attempt - 1, 0)))


DEFAULTS: Dict[str, Any] = {
    "element_tag": "varroa",
    "divider": " | ",
    "status_container_id": "userinfo_stats",
    "status_element_id": "nav_varroa",
    "open_timeout": 10.0,
    "labels": {
        "link": "VM",
        "link_tooltip": "Send to varroa musica",
        "status_ok": "VM is up.",
        "status_ko": "VM is offline (click to check again).",
        "notify_title": "Varroa Musica:",
        "notify_missing_config": "Missing configuration\nVisit user settings and setup",
    },
    "retry": {
        "max_attempts": 0,
        "backoff_floor": 2.0,
        "backoff_max": 60.0,
    },
}


def load_settings(path: str | Path | None = None) -> EngineSettings:
    """Load settings from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineSettings(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
