#!/usr/bin/env python3
"""
Script to create the demo seller profile.
Safe to run repeatedly: an existing demo seller is left as is.
"""

import asyncio
import sys

from scheduler_app.core.config import settings
from scheduler_app.core.database import DatabaseClient
from scheduler_app.schemas.seller import SellerProfileUpdate
from scheduler_app.services.seller import SellerService

DEMO_SELLER_EMAIL = "demo@seller.com"
DEMO_SELLER_PROFILE = SellerProfileUpdate(
    business_name="Demo Seller",
    description="Demo seller for trying out bookings",
    timezone="America/New_York",
)


async def seed_demo_seller(database_url: str = None) -> bool:
    """Create the demo seller if it does not exist yet."""
    database = DatabaseClient(database_url or settings.DATABASE_URL)

    try:
        await database.init(create_tables=settings.DATABASE_CREATE_TABLES)

        async with database.session_factory() as session:
            service = SellerService(session)
            seller = await service.get_by_owner(DEMO_SELLER_EMAIL)
            if seller:
                print(f"Demo seller already exists: {seller.id}")
                return True

            seller = await service.upsert_profile(
                DEMO_SELLER_EMAIL, DEMO_SELLER_PROFILE
            )
            print(f"✅ Created demo seller: {seller.id} ({DEMO_SELLER_EMAIL})")

    except Exception as e:
        print(f"❌ Error seeding demo seller: {e}")
        return False
    finally:
        await database.close()

    return True


if __name__ == "__main__":
    ok = asyncio.run(seed_demo_seller(sys.argv[1] if len(sys.argv) > 1 else None))
    sys.exit(0 if ok else 1)
