"""
Seed the database with demo accounts and dustbins.
Demo rows that already exist are left untouched, so the script can be rerun.
Run from backend dir: python scripts/seed_database.py
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime

from database import Base, SessionLocal, engine
from models import Dustbin, User
from services.auth import hash_password

# 1x1 PNG placeholder
PLACEHOLDER_PHOTO = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk"
    "+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)

DEMO_PASSWORD = "test123"

USERS = [
    {"name": "Test Collector", "email": "collector@test.com", "role": "collector"},
    {"name": "Government Employee", "email": "employee@gov.com", "role": "employee"},
]

DUSTBINS = [
    {"name": "Main Street Bin", "description": "Primary collection point", "sector": "Zone A",
     "type": "mixed", "capacity_liters": 240, "fill_level": 30, "lat": 12.9721, "lng": 77.5950},
    {"name": "Park Bin", "description": "Park entrance bin", "sector": "Zone B",
     "type": "organic", "capacity_liters": 120, "fill_level": 60, "lat": 12.9716, "lng": 77.5946},
    {"name": "Market Bin", "description": "Market area collection", "sector": "Zone A",
     "type": "plastic", "capacity_liters": 240, "fill_level": 45, "lat": 12.9726, "lng": 77.5955},
]


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # Rows that already exist may be referenced by reports, incidents
        # and withdrawals, so they are kept as they are.
        now = datetime.utcnow()
        added_users = 0
        for entry in USERS:
            if db.query(User.id).filter(User.email == entry["email"]).first():
                continue
            db.add(User(
                password_hash=hash_password(DEMO_PASSWORD),
                settings={},
                created_at=now,
                last_active_at=now,
                **entry,
            ))
            added_users += 1
        added_dustbins = 0
        for entry in DUSTBINS:
            if db.query(Dustbin.id).filter(Dustbin.name == entry["name"]).first():
                continue
            db.add(Dustbin(
                status="active",
                photo_base64=PLACEHOLDER_PHOTO,
                initial_photo_base64=PLACEHOLDER_PHOTO,
                verification_radius=50.0,
                urgent=False,
                **entry,
            ))
            added_dustbins += 1
        db.commit()
    finally:
        db.close()

    for entry in USERS:
        print(f"User {entry['email']} ({entry['role']}) - password: {DEMO_PASSWORD}")
    print(f"Inserted {added_users} users and {added_dustbins} dustbins.")
    return added_users, added_dustbins

if __name__ == "__main__":
    main()
