"""
Feature flags.

Resolution order for every flag:

1. Explicit overrides passed to the resolver (settings or tests)
2. Environment variables (``ANUNCIOS_FF_<FLAG_NAME>``)
3. Defaults declared on ``FeatureFlags``

Overrides live on the resolver instance, never at module level, so each app
or test builds its own resolver.
"""

from __future__ import annotations

import os
from typing import Any, Literal, Mapping, Optional, get_args

import structlog
from fastapi import Depends
from pydantic import BaseModel

from anuncios.core.config import get_settings
from anuncios.core.errors import NotFoundError

log = structlog.get_logger()

ENV_PREFIX = "ANUNCIOS_FF_"

MapProvider = Literal["google", "leaflet", "auto"]

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


class FeatureFlags(BaseModel):
    # Route visibility
    financing_simulator: bool = False  # /casa
    flood_forecast: bool = False  # /floodrisk
    organizations: bool = True
    public_collections: bool = True
    map_provider: MapProvider = "auto"


_DEFAULTS = FeatureFlags()


def env_var_name(flag: str) -> str:
    return f"{ENV_PREFIX}{flag.upper()}"


class FlagResolver:
    def __init__(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        unknown = set(overrides or {}) - set(FeatureFlags.model_fields)
        if unknown:
            raise ValueError(f"Unknown feature flags: {sorted(unknown)}")
        self._overrides = dict(overrides or {})
        self._environ = os.environ if environ is None else environ

    def _from_env(self, name: str) -> Any:
        raw = self._environ.get(env_var_name(name))
        if raw is None or raw == "":
            return None

        default = getattr(_DEFAULTS, name)
        if isinstance(default, bool):
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            log.warning("flags.invalid_env_value", flag=name, value=raw)
            return None

        allowed = get_args(FeatureFlags.model_fields[name].annotation)
        if allowed and raw not in allowed:
            log.warning("flags.invalid_env_value", flag=name, value=raw)
            return None
        return raw

    def get(self, name: str) -> Any:
        if name not in FeatureFlags.model_fields:
            raise KeyError(name)
        if name in self._overrides:
            return self._overrides[name]
        env_value = self._from_env(name)
        if env_value is not None:
            return env_value
        return getattr(_DEFAULTS, name)

    def is_enabled(self, name: str) -> bool:
        return self.get(name) is True

    def all(self) -> FeatureFlags:
        return FeatureFlags(**{name: self.get(name) for name in self.names()})

    @staticmethod
    def names() -> list[str]:
        return list(FeatureFlags.model_fields)

    @staticmethod
    def default(name: str) -> Any:
        return getattr(_DEFAULTS, name)


def get_flag_resolver() -> FlagResolver:
    """FastAPI dependency; override in tests via ``app.dependency_overrides``."""
    return FlagResolver(overrides=get_settings().feature_flag_overrides)


def require_flag(name: str):
    """Dependency factory: 404 when the feature is switched off."""

    async def _check(flags: FlagResolver = Depends(get_flag_resolver)) -> None:
        if not flags.is_enabled(name):
            raise NotFoundError("Feature")

    return _check
