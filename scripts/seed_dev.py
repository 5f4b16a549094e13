#!/usr/bin/env python
"""Seed the development database with a demo researcher and one chat.

Constraints:
- Refuses to run outside local/test (LABMATE_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Manual invocation only

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py
"""

import os
import sys
from datetime import datetime, timedelta, timezone

DEMO_USER_ID = "0b7e4a9c-3d1f-4c6e-9a2b-5f8d1e7c4a30"
DEMO_CHAT_ID = "6a1c9e2f-8b4d-4f7a-a3c5-2e9d7b1f6c80"
DEMO_MESSAGES = (
    ("4e2a7c91-5b3d-4a8f-b6e1-9c0d2f7a3b54", "user", "What controls should a qPCR run include?"),
    (
        "9d3f1b6a-7c2e-4e5a-8f0b-1a4c6e8d2b97",
        "assistant",
        "Include a no-template control, a no-reverse-transcriptase control and a reference gene.",
    ),
)


def main():
    labmate_env = os.getenv("LABMATE_ENV", "local")
    if labmate_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in LABMATE_ENV={labmate_env}")
        sys.exit(1)

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from sqlalchemy import create_engine, text

    engine = create_engine(database_url)
    start = datetime.now(timezone.utc) - timedelta(days=1)

    with engine.begin() as conn:
        conn.execute(
            text("INSERT INTO users (id) VALUES (:id) ON CONFLICT (id) DO NOTHING"),
            {"id": DEMO_USER_ID},
        )
        conn.execute(
            text("""
                INSERT INTO profiles (user_id, email, full_name, institution, research_field)
                VALUES (:user_id, 'demo@labmate.local', 'Demo Researcher',
                        'Example University', 'Molecular Biology')
                ON CONFLICT (user_id) DO NOTHING
            """),
            {"user_id": DEMO_USER_ID},
        )
        chat_created = (
            conn.execute(
                text("""
                    INSERT INTO chats (id, user_id, title, created_at, updated_at)
                    VALUES (:id, :user_id, :title, :ts, :ts)
                    ON CONFLICT (id) DO NOTHING
                    RETURNING id
                """),
                {
                    "id": DEMO_CHAT_ID,
                    "user_id": DEMO_USER_ID,
                    "title": DEMO_MESSAGES[0][2],
                    "ts": start,
                },
            ).fetchone()
            is not None
        )
        for i, (message_id, role, content) in enumerate(DEMO_MESSAGES):
            conn.execute(
                text("""
                    INSERT INTO messages (id, chat_id, role, content, created_at)
                    VALUES (:id, :chat_id, :role, :content, :ts)
                    ON CONFLICT (id) DO NOTHING
                """),
                {
                    "id": message_id,
                    "chat_id": DEMO_CHAT_ID,
                    "role": role,
                    "content": content,
                    "ts": start + timedelta(seconds=i),
                },
            )

    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"LABMATE_ENV: {labmate_env}")
    print(f"{'Created' if chat_created else 'Exists'}: chat {DEMO_CHAT_ID} for user {DEMO_USER_ID}")
    print("The demo user has no identity account; sign in with a token whose sub matches it.")


if __name__ == "__main__":
    main()
