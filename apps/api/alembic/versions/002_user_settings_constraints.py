"""constrain subscription tier and sprint length on app_user

Revision ID: 002
Revises: 001
Create Date: 2026-10-25 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_check_constraint(
        'ck_app_user_subscription_tier_enum',
        'app_user',
        "subscription_tier IN ('free', 'pro', 'enterprise')",
    )
    op.create_check_constraint(
        'ck_app_user_sprint_duration_weeks',
        'app_user',
        'sprint_duration_weeks IN (1, 2)',
    )


def downgrade() -> None:
    op.drop_constraint('ck_app_user_sprint_duration_weeks', 'app_user', type_='check')
    op.drop_constraint('ck_app_user_subscription_tier_enum', 'app_user', type_='check')
