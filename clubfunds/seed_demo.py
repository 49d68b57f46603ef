"""
Database seeding script for a demo club.

Creates one club with a campaign, an event inside the campaign and a
standalone event, then prints a bearer token scoped to that club.
Run this script after the database is set up.
"""

import asyncio
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from clubfunds.app.db.session import AsyncSessionLocal, Base, engine
from clubfunds.app.models.club import Club
from clubfunds.app.models.campaign import Campaign
from clubfunds.app.models.event import Event
from clubfunds.app.models.income import Income  # noqa: F401
from clubfunds.app.models.expense import Expense  # noqa: F401
from clubfunds.app.core.jwt import create_access_token
from sqlalchemy import select


async def seed_demo():
    """
    Seed a demo club hierarchy.

    Creates:
    - 1 club ("Riverside Rowing Club")
    - 1 campaign with a gala event
    - 1 standalone quiz night
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo seeding...")

        result = await db.execute(
            select(Club).where(Club.name == "Riverside Rowing Club")
        )
        club = result.scalar_one_or_none()

        if club:
            print("ℹ️  Demo club already exists, skipping seeding")
        else:
            club = Club(name="Riverside Rowing Club")
            db.add(club)
            await db.flush()

            campaign = Campaign(
                club_id=club.id,
                name="New Boathouse",
                target_amount=Decimal("50000.00"),
                start_date=date(2024, 1, 1),
                end_date=date(2024, 12, 31),
            )
            db.add(campaign)
            await db.flush()
            print(f"✅ Created campaign '{campaign.name}' (id: {campaign.id})")

            gala = Event(
                club_id=club.id,
                campaign_id=campaign.id,
                title="Spring Gala",
                goal_amount=Decimal("10000.00"),
                event_date=date(2024, 4, 20),
            )
            quiz = Event(
                club_id=club.id,
                title="Quiz Night",
                goal_amount=Decimal("800.00"),
                event_date=date(2024, 2, 9),
            )
            db.add_all([gala, quiz])
            await db.commit()
            print(f"✅ Created events '{gala.title}' and '{quiz.title}'")

        token = create_access_token(
            data={"sub": "treasurer@riverside.example", "user_id": 1, "club_id": club.id, "role": "treasurer"}
        )

        print("\n🎉 Demo seeding completed!")
        print(f"\nClub id: {club.id}")
        print(f"Bearer token:\n  {token}")


if __name__ == "__main__":
    asyncio.run(seed_demo())
