from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

# Environment values feed the ${oc.env:...} interpolations in config.yaml
load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:4]]


def _locate_config() -> Path:
    override = os.environ.get("GATEPASS_CONFIG")
    if override:
        return Path(override)
    path = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
    if path is None:  # pragma: no cover - fail fast in misconfigured environments
        raise FileNotFoundError("Default config.yaml could not be located; reinstall gatepass-backend or set GATEPASS_CONFIG.")
    return path


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    config_path = _locate_config()
    if not config_path.exists():
        raise FileNotFoundError(f"Default config not found at {config_path}")
    return OmegaConf.load(config_path)


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    """
    Build the runtime settings from config.yaml plus optional overrides.

    Overrides are merged in struct mode, so a misspelled key raises instead of
    being silently ignored. Interpolations (including environment lookups) are
    resolved at merge time and the result is read-only.
    """
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = OmegaConf.merge(base, OmegaConf.create(overrides or {}))
    OmegaConf.resolve(merged)
    OmegaConf.set_readonly(merged, True)
    return merged  # type: ignore[return-value]


@lru_cache(maxsize=1)
def get_settings() -> DictConfig:
    return load_settings()


def settings_to_dict(section: DictConfig) -> Dict[str, Any]:
    return OmegaConf.to_container(section, resolve=True)  # type: ignore[return-value]
