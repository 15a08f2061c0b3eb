from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

from selfheal.config.schema import HealingSettings

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigLoader:
    """Loads and validates healing settings from JSON or the environment."""

    @staticmethod
    def load(path: str | Path) -> HealingSettings:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return HealingSettings.model_validate(payload)

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> HealingSettings:
        env = os.environ if environ is None else environ
        payload: dict[str, Any] = {}
        store: dict[str, Any] = {}

        if env.get("SELF_HEALING_STRATEGY"):
            payload["strategy"] = env["SELF_HEALING_STRATEGY"]
        if env.get("SELF_HEALING_AI_ENABLED", "").strip().lower() in _TRUTHY:
            payload["strategy"] = "ai"
        if env.get("SELF_HEALING_LOG_LEVEL"):
            payload["log_level"] = env["SELF_HEALING_LOG_LEVEL"]
        if env.get("SELF_HEALING_STORE_FILE"):
            store["file_name"] = env["SELF_HEALING_STORE_FILE"]
        if env.get("SELF_HEALING_STORE_DIR"):
            store["directory"] = env["SELF_HEALING_STORE_DIR"]
        if store:
            payload["store"] = store
        if env.get("LLM_PROVIDER"):
            payload["generative"] = {"provider": env["LLM_PROVIDER"]}
        return HealingSettings.model_validate(payload)
