"""Resolved feature flags for the UI."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from anuncios.core.flags import FeatureFlags, FlagResolver, get_flag_resolver

router = APIRouter()


@router.get("", response_model=FeatureFlags)
async def list_flags(flags: FlagResolver = Depends(get_flag_resolver)):
    return flags.all()
