#!/usr/bin/env python
"""
Seed script for local painter directory entries.
Run with: cd backend; python scripts/seed_painters.py
Requires DATABASE_URL in .env.

The ids are not Zoho ids, so crew rows using them are never pushed to Zoho.
Safe to run repeatedly.
"""

from crewportal.database import SessionLocal
from crewportal.services.crm_projection import upsert_painter

DUMMY_PAINTERS = [
    {"id": "dummy-001", "name": "Alex Rivera", "email": "alex.rivera@example.com", "phone": "555-0101", "active": True},
    {"id": "dummy-002", "name": "Jordan Lee", "email": "jordan.lee@example.com", "phone": "555-0102", "active": True},
    {"id": "dummy-003", "name": "Sam Taylor", "email": "sam.taylor@example.com", "phone": None, "active": True},
    {"id": "dummy-004", "name": "Casey Brown", "email": None, "phone": "555-0104", "active": True},
    {"id": "dummy-005", "name": "Riley Davis", "email": "riley.davis@example.com", "phone": "555-0105", "active": False},
]


def seed_painters():
    db = SessionLocal()
    try:
        for painter in DUMMY_PAINTERS:
            upsert_painter(db, painter)
        db.commit()
        print(f"Seeded {len(DUMMY_PAINTERS)} dummy painters.")
    except Exception as e:
        db.rollback()
        print(f"Error seeding painters: {e}")
    finally:
        db.close()


if __name__ == '__main__':
    seed_painters()
