"""Seed script to populate dev database with sample links, clicks and page views.

After seeding, POST to /api/t/form with one of the printed tracker ids (or
from one of the printed IPs) to see each attribution strategy fire.
"""

import asyncio
import uuid
from datetime import timedelta

from sqlalchemy import select

from app.database import async_session_factory, engine, Base
from app.models import LinkClick, PageView, TrackingLink
from app.timeutils import utcnow

DEMO_OWNER = "user_demo"


async def seed_database():
    """Seed the database with sample data for development."""

    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        # Check if we already have data
        existing = await db.execute(select(TrackingLink).limit(1))
        if existing.scalar_one_or_none():
            print("Database already has data. Skipping seed.")
            return

        print("Seeding database with sample data...")
        now = utcnow()

        links = []
        for slug, campaign in [("spring-sale", "SPRING"), ("bio-link", None), ("yt-desc", "YT")]:
            link = TrackingLink(
                id=uuid.uuid4(),
                owner_id=DEMO_OWNER,
                slug=slug,
                destination_url=f"https://shop.example.com/{slug}",
                campaign=campaign,
                is_active=True,
                created_at=now - timedelta(days=14),
            )
            db.add(link)
            links.append(link)
        await db.flush()
        print(f"Created {len(links)} links for owner {DEMO_OWNER}")

        # Clicks spread over the last two days, one visitor IP per click
        for i in range(30):
            link = links[i % len(links)]
            db.add(
                LinkClick(
                    id=uuid.uuid4(),
                    tracking_link_id=link.id,
                    clicked_at=now - timedelta(minutes=15 + i * 90),
                    ip_address=f"203.0.113.{i + 1}",
                    tracker_id=f"rckr_demo_{i:02d}",
                    device_type="mobile" if i % 3 else "desktop",
                    utm_source="tiktok" if i % 2 else "instagram",
                )
            )
        print("Created 30 sample clicks")

        # Page views bridge the first few trackers to their links
        for i in range(5):
            link = links[i % len(links)]
            db.add(
                PageView(
                    id=uuid.uuid4(),
                    tracker_id=f"rckr_demo_{i:02d}",
                    tracking_link_id=link.id,
                    page_url=link.destination_url,
                    page_title="Landing",
                    viewed_at=now - timedelta(minutes=10 + i * 90),
                )
            )
        print("Created 5 sample page views")

        await db.commit()
        print("\nDatabase seeded successfully!")
        print("\nTry these for testing:")
        print(f"  Owner header:  X-Racker-User: {DEMO_OWNER}")
        print("  Tracker match: trackerId=rckr_demo_00")
        print(f"  Link match:    linkId={links[1].id}")
        print("  IP match:      X-Forwarded-For: 203.0.113.10")


if __name__ == "__main__":
    asyncio.run(seed_database())
