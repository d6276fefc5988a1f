#!/usr/bin/env python3
"""Seed demo data for the local SQL store: accounts, support tickets, deletion requests.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py

Then run the API against it with ``STORE_BACKEND=sql``.
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone

# Ensure project root is on sys.path
sys.path.insert(0, ".")

from reviewdesk.db.session import get_session_factory, init_db
from reviewdesk.review.kinds import QueueKind
from reviewdesk.store.sql_store import SqlQueueStore


def seed(store: SqlQueueStore) -> None:
    """Insert demo accounts plus a mix of current and legacy queue items."""
    now = datetime.now(timezone.utc)

    demo_people = [
        # (id, name, email, phone, user_type)
        ("u-alice", "Alice Johnson", "alice.johnson@example.com", "+12025551001", "CLIENT"),
        ("u-priya", "Priya Patel", "priya.patel@example.in", "+919876543210", "LAWYER"),
        ("u-carlos", "Carlos Rivera", "carlos.r@example.com", "+12025551003", "CLIENT"),
        ("u-fatima", "Fatima Khan", "fatima.khan@example.co.uk", "+447911123456", "LAWYER"),
    ]
    for account_id, name, email, phone, user_type in demo_people:
        store.add_account(account_id, name=name, email=email, phone=phone, user_type=user_type)

    tickets = [
        {
            "userId": "u-alice",
            "userName": "Alice Johnson",
            "userEmail": "alice.johnson@example.com",
            "userType": "CLIENT",
            "title": "Cannot book a consultation",
            "description": "The booking page spins forever after I pick a slot.",
            "category": "TECHNICAL",
            "priority": "HIGH",
            "status": "PENDING",
            "createdAt": (now - timedelta(hours=5)).isoformat(),
        },
        {
            "userId": "u-priya",
            "userName": "Priya Patel",
            "userEmail": "priya.patel@example.in",
            "userType": "LAWYER",
            "title": "Payout missing for March",
            "description": "Two completed consultations were not paid out.",
            "category": "PAYMENT",
            "priority": "MEDIUM",
            "status": "IN_PROGRESS",
            "createdAt": {"_seconds": int((now - timedelta(days=2)).timestamp()), "_nanoseconds": 0},
            "answers": [
                {
                    "id": "a-1",
                    "answer": "We are checking with the payment provider.",
                    "answeredBy": "admin-1",
                    "answeredByType": "ADMIN",
                    "answeredAt": (now - timedelta(days=1)).isoformat(),
                }
            ],
        },
        # Legacy contact-form submission
        {
            "name": "Walk-in Visitor",
            "email": "visitor@example.com",
            "phone": "+12025559999",
            "message": "Do you offer help with tenancy disputes?",
            "status": "new",
            "createdAt": (now - timedelta(days=9)).isoformat(),
        },
    ]
    for payload in tickets:
        store.add_item(QueueKind.SUPPORT, payload)

    requests = [
        {
            "userId": "u-carlos",
            "userName": "Carlos Rivera",
            "userEmail": "carlos.r@example.com",
            "userPhone": "+12025551003",
            "reason": "I no longer need the service.",
            "status": "pending",
            "requestedAt": (now - timedelta(hours=20)).isoformat(),
        },
        {
            "userId": "u-fatima",
            "userName": "Fatima Khan",
            "userEmail": "fatima.khan@example.co.uk",
            "userPhone": "+447911123456",
            "reason": "Moving my practice to another platform.",
            "status": "rejected",
            "adminNotes": "Outstanding consultations must be completed first.",
            "reviewedBy": "admin-1",
            "reviewedAt": (now - timedelta(days=3)).isoformat(),
            "requestedAt": (now - timedelta(days=4)).isoformat(),
        },
    ]
    for payload in requests:
        store.add_item(QueueKind.ACCOUNT_DELETION, payload)

    print(
        f"Seeded {len(demo_people)} accounts, {len(tickets)} support tickets, "
        f"{len(requests)} deletion requests."
    )


def main() -> None:
    init_db()
    seed(SqlQueueStore(get_session_factory()))


if __name__ == "__main__":
    main()
