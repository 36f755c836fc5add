#!/usr/bin/env python3
"""Migration script to create the contact_messages table and drop the old contact_rate_limits table."""

import os
import sys
from sqlalchemy import create_engine, text, inspect

# Load environment variables
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    print("ERROR: DATABASE_URL environment variable is required.")
    sys.exit(1)

# Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Create engine
engine = create_engine(DATABASE_URL)


def table_exists(connection, table_name):
    """Check if a table exists."""
    inspector = inspect(connection)
    return table_name in inspector.get_table_names()


def run_migration():
    print("Running migration to create contact_messages table...")
    print(f"Database: {engine.url.host}:{engine.url.port}/{engine.url.database}")

    with engine.connect() as connection:
        if not table_exists(connection, 'contact_messages'):
            print("Creating contact_messages table...")
            connection.execute(text("""
                CREATE TABLE contact_messages (
                    id VARCHAR PRIMARY KEY,
                    name VARCHAR NOT NULL,
                    email VARCHAR NOT NULL,
                    phone VARCHAR,
                    subject VARCHAR NOT NULL,
                    message TEXT NOT NULL,
                    status VARCHAR NOT NULL DEFAULT 'new',
                    priority VARCHAR NOT NULL DEFAULT 'medium',
                    ip VARCHAR,
                    user_agent VARCHAR,
                    fingerprint VARCHAR,
                    submission_time TIMESTAMP,
                    form_fill_time INTEGER,
                    verified BOOLEAN NOT NULL DEFAULT FALSE,
                    reply_message TEXT,
                    replied_by VARCHAR,
                    replied_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """))
            connection.execute(text("CREATE INDEX ix_contact_messages_email ON contact_messages (email)"))
            connection.execute(text("CREATE INDEX ix_contact_messages_status ON contact_messages (status)"))
            connection.execute(text("CREATE INDEX ix_contact_messages_priority ON contact_messages (priority)"))
            connection.execute(text("CREATE INDEX ix_contact_messages_fingerprint ON contact_messages (fingerprint)"))
            connection.execute(text("CREATE INDEX ix_contact_messages_created_at ON contact_messages (created_at)"))
            connection.execute(text(
                "CREATE INDEX idx_contact_messages_status_created ON contact_messages (status, created_at)"
            ))
            print("✓ Successfully created contact_messages table.")
        else:
            print("✓ Table 'contact_messages' already exists.")

        # Rate limits are kept in process memory now
        if table_exists(connection, 'contact_rate_limits'):
            print("Dropping contact_rate_limits table...")
            connection.execute(text("DROP TABLE contact_rate_limits"))
            print("✓ Dropped contact_rate_limits table.")

        connection.commit()

    print("\n✓ Migration completed successfully!")


if __name__ == "__main__":
    run_migration()
