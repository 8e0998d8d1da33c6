"""initial 10xCards schema

Revision ID: initial_schema_20261019
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'initial_schema_20261019'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    deck_visibility = sa.Enum('private', name='deck_visibility')
    flashcard_source = sa.Enum('manual', 'ai-full', 'ai-edited', name='flashcard_source')
    tag_scope = sa.Enum('global', 'deck', name='tag_scope')

    op.create_table(
        'decks',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('visibility', deck_visibility, nullable=False, server_default='private'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_decks_user_id', 'decks', ['user_id'])
    # Names are unique among live decks; one live default deck per user
    op.create_index(
        'uq_decks_user_id_name_active', 'decks', ['user_id', 'name'],
        unique=True, postgresql_where=sa.text('deleted_at IS NULL'),
    )
    op.create_index(
        'uq_decks_user_id_default', 'decks', ['user_id'],
        unique=True, postgresql_where=sa.text('is_default AND deleted_at IS NULL'),
    )

    op.create_table(
        'generations',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('deck_id', sa.BigInteger(), sa.ForeignKey('decks.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('generated_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('accepted_unedited_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('accepted_edited_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source_text_hash', sa.String(length=64), nullable=False),
        sa.Column('source_text_length', sa.Integer(), nullable=False),
        sa.Column('generation_duration', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_generations_deck_id', 'generations', ['deck_id'])
    op.create_index('ix_generations_user_id', 'generations', ['user_id'])
    op.create_index('ix_generations_source_text_hash', 'generations', ['source_text_hash'])
    op.create_index('ix_generations_created_at', 'generations', ['created_at'])

    op.create_table(
        'flashcards',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('deck_id', sa.BigInteger(), sa.ForeignKey('decks.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('front', sa.String(length=200), nullable=False),
        sa.Column('back', sa.String(length=500), nullable=False),
        sa.Column('source', flashcard_source, nullable=False, server_default='manual'),
        sa.Column('generation_id', sa.BigInteger(), sa.ForeignKey('generations.id'), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(source = 'manual' AND generation_id IS NULL) OR "
            "(source <> 'manual' AND generation_id IS NOT NULL)",
            name='ck_flashcards_source_generation',
        ),
    )
    op.create_index('ix_flashcards_deck_id', 'flashcards', ['deck_id'])
    op.create_index('ix_flashcards_user_id', 'flashcards', ['user_id'])

    op.create_table(
        'tags',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('scope', tag_scope, nullable=False, server_default='deck'),
        sa.Column('deck_id', sa.BigInteger(), sa.ForeignKey('decks.id'), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('name', 'deck_id', name='uq_tags_name_deck_id'),
        sa.CheckConstraint(
            "(scope = 'deck' AND deck_id IS NOT NULL) OR "
            "(scope = 'global' AND deck_id IS NULL)",
            name='ck_tags_scope_deck',
        ),
    )
    op.create_index('ix_tags_deck_id', 'tags', ['deck_id'])
    op.create_index('ix_tags_user_id', 'tags', ['user_id'])

    op.create_table(
        'flashcard_tags',
        sa.Column('flashcard_id', sa.BigInteger(), sa.ForeignKey('flashcards.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.BigInteger(), sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'generation_error_logs',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('source_text_hash', sa.String(length=64), nullable=False),
        sa.Column('source_text_length', sa.Integer(), nullable=False),
        sa.Column('error_code', sa.String(length=100), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_generation_error_logs_user_id', 'generation_error_logs', ['user_id'])


def downgrade() -> None:
    op.drop_table('generation_error_logs')
    op.drop_table('flashcard_tags')
    op.drop_table('tags')
    op.drop_table('flashcards')
    op.drop_table('generations')
    op.drop_table('decks')
    for enum_name in ('tag_scope', 'flashcard_source', 'deck_visibility'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
