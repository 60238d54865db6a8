"""
Seed the add-on catalog and plans, and optionally create a platform admin.

    python -m anuncios.scripts.seed --admin-email admin@example.com --admin-password secret123
"""

import argparse
import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.auth import hash_password
from anuncios.core.database import get_session_context, init_db
from anuncios.models.addon import Addon
from anuncios.models.plan import Plan
from anuncios.models.user import User

ADDONS = [
    ("Risco de Enchente", "flood", "Análise de risco de enchente com visualização 3D"),
    ("Simulador de Financiamento", "financiamento", "Simulador de financiamento imobiliário"),
]

PLANS = [
    ("Teste", "teste", "Plano de teste interno", 0),
    ("Plus", "plus", "Acesso completo à plataforma", 2000),
]


async def seed_addons(session: AsyncSession) -> int:
    """Insert missing catalog entries; existing slugs are left alone."""
    result = await session.execute(select(Addon.slug))
    existing = set(result.scalars().all())
    created = 0
    for name, slug, description in ADDONS:
        if slug not in existing:
            session.add(Addon(name=name, slug=slug, description=description))
            created += 1
    await session.flush()
    return created


async def seed_plans(session: AsyncSession) -> int:
    result = await session.execute(select(Plan.slug))
    existing = set(result.scalars().all())
    created = 0
    for name, slug, description, price in PLANS:
        if slug not in existing:
            session.add(Plan(name=name, slug=slug, description=description, price_in_cents=price))
            created += 1
    await session.flush()
    return created


async def ensure_admin(session: AsyncSession, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            email=email,
            name=email.split("@")[0],
            password_hash=hash_password(password),
            is_admin=True,
        )
        print(f"Created admin user: {email}")
    else:
        user.is_admin = True
        print(f"Promoted {email} to platform admin.")
    session.add(user)
    await session.flush()
    return user


async def main(admin_email: Optional[str], admin_password: Optional[str]) -> None:
    await init_db()
    async with get_session_context() as session:
        print(f"Add-ons created: {await seed_addons(session)}")
        print(f"Plans created: {await seed_plans(session)}")
        if admin_email and admin_password:
            await ensure_admin(session, admin_email, admin_password)
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed catalog data for a local database.")
    parser.add_argument("--admin-email", help="Email address for a platform admin")
    parser.add_argument("--admin-password", help="Password for the platform admin")

    args = parser.parse_args()

    asyncio.run(main(args.admin_email, args.admin_password))
