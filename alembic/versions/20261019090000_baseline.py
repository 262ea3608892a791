"""baseline: campaigns, forms, submissions, activities, exports, audit

Revision ID: 20261019090000
Revises:
Create Date: 2026-10-19T09:00:00Z
"""

from alembic import op

revision = "20261019090000"
down_revision = None
branch_labels = None
depends_on = None


def _metadata():
    from scribo.db.base import Base
    import scribo.db.models  # noqa: F401

    return Base.metadata


def upgrade() -> None:
    _metadata().create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    _metadata().drop_all(bind=op.get_bind(), checkfirst=True)
