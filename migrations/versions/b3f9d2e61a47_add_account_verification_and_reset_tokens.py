"""add account verification and password reset tokens

Revision ID: b3f9d2e61a47
Revises: 7c1e4b2a9d10
Create Date: 2026-02-03 16:41:09.227318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b3f9d2e61a47'
down_revision: Union[str, None] = '7c1e4b2a9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

token_type_enum = sa.Enum('ACCOUNT_VERIFICATION', 'PASSWORD_RESET', name='tokentypeenum')


def upgrade() -> None:
    # accounts that existed before verification was introduced stay usable
    op.add_column('users', sa.Column('is_verified', sa.Boolean(), server_default=sa.true(), nullable=False))
    op.alter_column('users', 'is_verified', server_default=None)

    op.create_table(
        'one_time_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('token_type', token_type_enum, nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_one_time_tokens_id'), 'one_time_tokens', ['id'], unique=False)
    op.create_index(op.f('ix_one_time_tokens_token'), 'one_time_tokens', ['token'], unique=True)
    op.create_index(op.f('ix_one_time_tokens_user_id'), 'one_time_tokens', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_one_time_tokens_user_id'), table_name='one_time_tokens')
    op.drop_index(op.f('ix_one_time_tokens_token'), table_name='one_time_tokens')
    op.drop_index(op.f('ix_one_time_tokens_id'), table_name='one_time_tokens')
    op.drop_table('one_time_tokens')
    token_type_enum.drop(op.get_bind(), checkfirst=True)
    op.drop_column('users', 'is_verified')
