"""
Database seeding script for a fresh ledger.

Creates the base currency and a first volunteer, then prints a bearer token
for that volunteer so the API can be exercised straight away.
Run after the database is reachable; tables are created if missing.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from ledger_backend.app.core.jwt import create_access_token
from ledger_backend.app.db.session import AsyncSessionLocal, init_models
from ledger_backend.app.models.currency import Currency
from ledger_backend.app.models.volunteer import Volunteer
import ledger_backend.app.main  # registers every model on Base

BASE_CURRENCY = {"code": "PKR", "name": "Pakistani Rupee", "symbol": "Rs"}
FIRST_VOLUNTEER = {"name": "Coordinator", "email": "coordinator@example.org"}


async def seed_reference_data():
    await init_models()

    async with AsyncSessionLocal() as db:
        print("🌱 Seeding reference data...")

        result = await db.execute(select(Currency).where(Currency.is_base.is_(True)))
        if result.scalar_one_or_none():
            print("ℹ️  Base currency already configured, skipping")
        else:
            db.add(Currency(exchange_rate_to_base=Decimal("1"), is_base=True, **BASE_CURRENCY))
            print(f"✅ Created base currency {BASE_CURRENCY['code']}")

        result = await db.execute(select(Volunteer).where(Volunteer.email == FIRST_VOLUNTEER["email"]))
        volunteer = result.scalar_one_or_none()
        if volunteer:
            print("ℹ️  Coordinator volunteer already exists, skipping")
        else:
            volunteer = Volunteer(**FIRST_VOLUNTEER)
            db.add(volunteer)
            print(f"✅ Created volunteer {FIRST_VOLUNTEER['email']}")

        await db.commit()
        await db.refresh(volunteer)

        token = create_access_token(
            data={"sub": volunteer.email, "user_id": volunteer.id},
            expires_delta=timedelta(days=1),
        )
        print("\n🎉 Seeding completed.")
        print(f"\nBearer token for {volunteer.email} (valid 24h):\n{token}")


if __name__ == "__main__":
    asyncio.run(seed_reference_data())
