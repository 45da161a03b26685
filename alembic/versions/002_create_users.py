"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

Usernames follow the registration charset. Emails are stored lowercased and
unique regardless of case, so "Jamie@x.com" cannot open a second wallet.
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            password_hash   VARCHAR(255)    NOT NULL,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username        UNIQUE (username),
            CONSTRAINT ck_users_username_format CHECK (username ~ '^[A-Za-z0-9_]{3,64}$'),
            CONSTRAINT ck_users_email_lower     CHECK (email = LOWER(email))
        );
    """)
    op.execute("CREATE UNIQUE INDEX uq_users_email_lower ON users (LOWER(email));")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        COMMENT ON COLUMN users.id IS
            'Principal id; its text form keys the wallet account and every marketplace row';
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_users_updated_at ON users;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
