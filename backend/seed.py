"""Seed script for the office time-tracking backend.

Populates the database with demo data:
- 8 users (admin, HR, two managers, four employees) with reporting lines
- 4 leave types (CL, SL, PL, LWP)
- leave balances for the current year, in minutes
- a handful of leave requests, decided through the leave ledger

Usage:
    cd backend && python seed.py
"""

import asyncio
import os
import sys
from datetime import date, datetime, timezone

from sqlalchemy import select

# Ensure the backend directory is on the path when running from backend/
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from officetrack.core.config import get_settings
from officetrack.core.database import Base, build_engine, build_session_factory
from officetrack.core.security import Identity, hash_password
from officetrack.models import LeaveBalance, LeaveType, User
from officetrack.services.leave_ledger import LeaveLedger

DAY = 480  # minutes in a leave day

# ── Seed Data Definitions ────────────────────────────────────────────────────

USERS_DATA = [
    {"key": "admin", "role": "admin", "first": "Sarah", "last": "Chen",
     "email": "sarah.chen@acme.com", "dept": "Executive", "manager": None},
    {"key": "hr", "role": "hr", "first": "Michael", "last": "Roberts",
     "email": "michael.roberts@acme.com", "dept": "Human Resources", "manager": "admin"},
    {"key": "eng_mgr", "role": "manager", "first": "Priya", "last": "Patel",
     "email": "priya.patel@acme.com", "dept": "Engineering", "manager": "admin"},
    {"key": "ops_mgr", "role": "manager", "first": "Robert", "last": "Brown",
     "email": "robert.brown@acme.com", "dept": "Operations", "manager": "admin"},
    {"key": "emily", "role": "employee", "first": "Emily", "last": "Johnson",
     "email": "emily.johnson@acme.com", "dept": "Engineering", "manager": "eng_mgr"},
    {"key": "james", "role": "employee", "first": "James", "last": "Wilson",
     "email": "james.wilson@acme.com", "dept": "Engineering", "manager": "eng_mgr"},
    {"key": "maria", "role": "employee", "first": "Maria", "last": "Garcia",
     "email": "maria.garcia@acme.com", "dept": "Operations", "manager": "ops_mgr"},
    {"key": "alex", "role": "employee", "first": "Alex", "last": "Thompson",
     "email": "alex.thompson@acme.com", "dept": "Operations", "manager": "ops_mgr"},
]

LEAVE_TYPES_DATA = [
    {"code": "CL", "name": "Casual Leave", "quota": 12 * DAY},
    {"code": "SL", "name": "Sick Leave", "quota": 10 * DAY},
    {"code": "PL", "name": "Privilege Leave", "quota": 18 * DAY, "carry": True},
    {"code": "LWP", "name": "Leave Without Pay", "quota": 0},
]


def _weekday(year: int, week: int, weekday: int) -> str:
    return date.fromisocalendar(year, week, weekday).isoformat()


def build_leave_requests(year: int):
    """Leave requests to file, with the decision to take on each."""
    return [
        {"user": "emily", "type": "CL", "start": _weekday(year, 11, 2), "end": _weekday(year, 11, 3),
         "duration": "full-day", "reason": "Family function", "decision": "approve"},
        {"user": "james", "type": "SL", "start": _weekday(year, 8, 4), "end": _weekday(year, 8, 4),
         "duration": "half-first", "reason": "Dental appointment", "decision": "approve"},
        {"user": "maria", "type": "PL", "start": _weekday(year, 15, 1), "end": _weekday(year, 15, 5),
         "duration": "full-day", "reason": "Moving to a new apartment", "decision": None},
        {"user": "alex", "type": "CL", "start": _weekday(year, 9, 1), "end": _weekday(year, 9, 1),
         "duration": "full-day", "reason": "Personal errand", "decision": "reject"},
    ]


# ── Main Seed Function ────────────────────────────────────────────────────────

async def seed():
    """Seed the database with demo users, leave types and requests."""
    settings = get_settings()
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        # 1. Check idempotency
        result = await db.execute(select(User).where(User.email == USERS_DATA[0]["email"]))
        if result.scalar_one_or_none():
            print("Admin user already exists. Skipping seed.")
            await engine.dispose()
            return

        print("Starting database seed...\n")

        # 2. Users, managers first so reporting lines resolve
        print("Creating users...")
        hashed_pw = hash_password("password123")
        users: dict[str, User] = {}
        for data in USERS_DATA:
            manager = users.get(data["manager"]) if data["manager"] else None
            user = User(
                email=data["email"],
                first_name=data["first"],
                last_name=data["last"],
                hashed_password=hashed_pw,
                role=data["role"],
                department=data["dept"],
                manager_id=manager.id if manager else None,
                is_active=True,
            )
            db.add(user)
            await db.flush()
            users[data["key"]] = user
            print(f"   {user.full_name} ({data['role']})")

        # 3. Leave types
        print("\nCreating leave types...")
        leave_types: dict[str, LeaveType] = {}
        for data in LEAVE_TYPES_DATA:
            lt = LeaveType(
                code=data["code"],
                name=data["name"],
                annual_quota=data["quota"],
                carry_forward=data.get("carry", False),
            )
            db.add(lt)
            leave_types[data["code"]] = lt
        await db.flush()
        print(f"   {len(leave_types)} leave types created")

        # 4. Balances for the current year
        year = datetime.now(timezone.utc).year
        print(f"\nCreating leave balances (year {year})...")
        count = 0
        for user in users.values():
            for lt in leave_types.values():
                if not lt.annual_quota:
                    continue
                db.add(
                    LeaveBalance(
                        user_id=user.id,
                        year=year,
                        leave_type_id=lt.id,
                        total_allocated=lt.annual_quota,
                        used=0,
                    )
                )
                count += 1
        await db.commit()
        print(f"   {count} leave balances created")

        # 5. Leave requests, through the ledger so balances are debited
        print("\nCreating leave requests...")
        admin = Identity(user_id=users["admin"].id, role="admin")
        ledger = LeaveLedger(db, settings)
        for req in build_leave_requests(year):
            request = await ledger.apply(
                users[req["user"]].id,
                req["type"],
                req["start"],
                req["end"],
                req["duration"],
                req["reason"],
            )
            if req["decision"] == "approve":
                request = await ledger.approve(request.id, admin, comment="Enjoy")
            elif req["decision"] == "reject":
                request = await ledger.reject(request.id, admin, comment="Team is short-staffed")
            print(f"   {req['user']}: {req['type']} {req['start']}..{req['end']} ({request.status})")

    await engine.dispose()
    print("\nSeed complete. All users share the password 'password123'.")


if __name__ == "__main__":
    asyncio.run(seed())
