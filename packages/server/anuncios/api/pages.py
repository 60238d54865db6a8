"""
Page routes.

The UI is rendered elsewhere; these handlers return a small page descriptor
so the gate's redirects have real targets. Access control for pages is the
gate's job (``anuncios.core.gate``); handlers only add what the gate cannot
know, such as feature flags and add-on access.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.auth import get_session_info
from anuncios.core.database import get_session
from anuncios.core.errors import NotFoundError
from anuncios.core.flags import FlagResolver, get_flag_resolver
from anuncios.core.gate import HOME_PAGE
from anuncios.services.addons import has_addon_access
from anuncios.services.organizations import get_membership

router = APIRouter(tags=["Pages"])

FINANCING_ADDON = "financiamento"
FLOOD_ADDON = "flood"


def _page(name: str, title: str, **extra) -> dict:
    return {"page": name, "title": title, **extra}


@router.get("/")
async def home():
    return _page("home", "Minha Casa")


@router.get("/login")
async def login_page(redirect: Optional[str] = None):
    return _page("login", "Entrar", redirect=redirect)


@router.get("/signup")
async def signup_page():
    return _page("signup", "Criar conta")


@router.get("/subscribe")
async def subscribe_page(redirect: Optional[str] = None):
    return _page("subscribe", "Assinatura", redirect=redirect)


@router.get("/planos")
async def plans_page():
    return _page("planos", "Planos")


@router.get("/anuncios")
async def listings_page(flags: FlagResolver = Depends(get_flag_resolver)):
    return _page("anuncios", "Anúncios", map_provider=flags.get("map_provider"))


async def _addon_page(
    request: Request,
    session: AsyncSession,
    flags: FlagResolver,
    *,
    flag: str,
    addon: str,
    name: str,
    title: str,
    org_id: Optional[uuid.UUID],
) -> dict:
    if not flags.is_enabled(flag):
        raise NotFoundError("Page")

    info = await get_session_info(request, session)
    if info is None:
        return _page(name, title, addon=addon, has_addon_access=False)

    # Org grants only count for members of that org
    if org_id is not None and await get_membership(org_id, info.user_id, session) is None:
        org_id = None

    has_access = await has_addon_access(info.user_id, addon, session, org_id=org_id)
    return _page(name, title, addon=addon, has_addon_access=has_access)


@router.get("/casa")
async def financing_page(
    request: Request,
    org_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_session),
    flags: FlagResolver = Depends(get_flag_resolver),
):
    return await _addon_page(
        request,
        session,
        flags,
        flag="financing_simulator",
        addon=FINANCING_ADDON,
        name="casa",
        title="Simulador de Financiamento",
        org_id=org_id,
    )


@router.get("/floodrisk")
async def flood_risk_page(
    request: Request,
    org_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_session),
    flags: FlagResolver = Depends(get_flag_resolver),
):
    return await _addon_page(
        request,
        session,
        flags,
        flag="flood_forecast",
        addon=FLOOD_ADDON,
        name="floodrisk",
        title="Risco de Enchente",
        org_id=org_id,
    )


@router.get("/admin")
async def admin_page(request: Request, session: AsyncSession = Depends(get_session)):
    """Non-admins are sent home."""
    info = await get_session_info(request, session)
    if info is None or not info.is_admin:
        return RedirectResponse(url=HOME_PAGE, status_code=307)
    return _page("admin", "Admin Dashboard")
