"""
Database seeding script for development accounts.

Creates one admin, one customer and a rider per zone, then prints a bearer
token for each so the API can be exercised without an identity provider.
"""

import asyncio

from sqlalchemy import select

from custody.app.core.jwt import create_access_token
from custody.app.db.session import AsyncSessionLocal, engine, Base
# Import models to ensure they are registered with Base
from custody.app.models.account import Account
from custody.app.models.package import Package
from custody.app.models.custody_log import CustodyLogEntry
from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import Zone


RIDER_NAMES = {
    Zone.WESTLANDS: "James Mwangi",
    Zone.KASARANI: "Peter Otieno",
    Zone.CBD: "Grace Wanjiru",
    Zone.NGONG: "Samuel Kiprop",
    Zone.EMBAKASI: "Faith Achieng",
    Zone.THIKA_ROAD: "Brian Kamau",
    Zone.KAREN: "Mercy Njeri",
    Zone.RUIRU: "David Mutua",
}


async def seed_accounts():
    """
    Seed development accounts.

    Creates:
    - 1 admin
    - 1 customer
    - 1 rider per zone
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting account seeding...")

        result = await db.execute(
            select(Account).where(Account.role == ActorRole.ADMIN)
        )
        if result.scalars().first():
            print("Admin account already exists, skipping seeding")
            return

        accounts = [
            Account(name="Hub Admin", phone="+254700000001", role=ActorRole.ADMIN),
            Account(name="Amina Hassan", phone="+254700000002", role=ActorRole.CUSTOMER),
        ]
        for i, (zone, name) in enumerate(RIDER_NAMES.items()):
            accounts.append(
                Account(name=name, phone=f"+2547110000{i:02d}", role=ActorRole.RIDER, home_zone=zone)
            )

        db.add_all(accounts)
        await db.commit()

        print("\nAccount seeding completed. Bearer tokens:")
        for account in accounts:
            token = create_access_token(data={"sub": account.phone, "user_id": account.id})
            zone = f" [{account.home_zone.value}]" if account.home_zone else ""
            print(f"  {account.role.value:<8} {account.name}{zone}: {token}")


if __name__ == "__main__":
    asyncio.run(seed_accounts())
