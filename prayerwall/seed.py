"""
Demo data for fresh installs.
"""

from __future__ import annotations

import logging

from prayerwall.db import DbClient

logger = logging.getLogger(__name__)


def seed_demo_data(db: DbClient) -> int:
    """
    Populate empty tables with a sample weekly challenge and two intentions.

    Tables that already hold records are left alone. Returns the number of
    records created.
    """
    created = 0
    if not db.list_challenges():
        db.create_challenge(
            "Weekly Rosary Challenge",
            "Rosary",
            1000,
            is_active=True,
            current_count=42,
        )
        created += 1

    if not db.list_intentions():
        db.create_intention(
            "For peace in my family and health for my grandparents.",
            name="Maria",
            prayer_type="Rosary",
            hail_mary_count=5,
            our_father_count=2,
            rosary_count=1,
        )
        db.create_intention(
            "For clarity in my career path.",
            name="Anonymous",
            prayer_type="Hail Mary",
            hail_mary_count=12,
        )
        created += 2

    if created:
        logger.info("Seeded %d demo record(s)", created)
    return created
