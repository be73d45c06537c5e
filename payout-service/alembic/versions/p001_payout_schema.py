"""Create payout service schema

Revision ID: p001_payout_schema
Revises:
Create Date: 2026-10-19

This migration creates:
- events / organizers read models
- ticket_sales projection
- event_earnings aggregate (version-checked)
- payout_profiles, legacy_payout_configs, verification_documents
- payout_destinations, withdrawal_requests, payout_change_verifications
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'p001_payout_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        )
    return columns


def upgrade() -> None:
    op.create_table(
        'events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('country', sa.String(64), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('start_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index('ix_events_organizer_id', 'events', ['organizer_id'])

    op.create_table(
        'organizers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('legal_name', sa.String(255), nullable=True),
        sa.Column('organization_name', sa.String(255), nullable=True),
        sa.Column('identity_status', sa.String(16), nullable=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        'ticket_sales',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('tier_id', sa.String(), nullable=True),
        sa.Column('tier_name', sa.String(255), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(64), nullable=True),
        sa.Column('payment_id', sa.String(255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_ticket_sales_event_id', 'ticket_sales', ['event_id'])
    op.create_index('ix_ticket_sales_event_purchased', 'ticket_sales', ['event_id', 'purchased_at', 'id'])

    op.create_table(
        'event_earnings',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('gross_sales', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tickets_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('platform_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processing_fees', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('available_to_withdraw', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('withdrawn_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('settlement_status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('settlement_ready_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('admin_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_reason', sa.Text(), nullable=True),
        sa.Column('locked_by', sa.String(), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_calculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('available_to_withdraw >= 0', name='check_available_non_negative'),
        sa.CheckConstraint('withdrawn_amount >= 0', name='check_withdrawn_non_negative'),
    )
    op.create_index('ix_event_earnings_event_id', 'event_earnings', ['event_id'], unique=True)
    op.create_index('ix_event_earnings_organizer_id', 'event_earnings', ['organizer_id'])

    op.create_table(
        'payout_profiles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('rail', sa.String(32), nullable=False),
        sa.Column('method', sa.String(32), nullable=True),
        sa.Column('bank_details', sa.JSON(), nullable=True),
        sa.Column('encrypted_bank_details', sa.Text(), nullable=True),
        sa.Column('mobile_money_details', sa.JSON(), nullable=True),
        sa.Column('allow_instant_moncash', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('on_hold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('hold_reason', sa.Text(), nullable=True),
        sa.Column('connected_account_id', sa.String(255), nullable=True),
        sa.Column('details_submitted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('charges_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payouts_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_status', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organizer_id', 'rail', name='uq_payout_profile_organizer_rail'),
    )
    op.create_index('ix_payout_profiles_organizer_id', 'payout_profiles', ['organizer_id'])

    op.create_table(
        'legacy_payout_configs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('payout_provider', sa.String(64), nullable=True),
        sa.Column('account_location', sa.String(64), nullable=True),
        sa.Column('method', sa.String(32), nullable=True),
        sa.Column('bank_details', sa.JSON(), nullable=True),
        sa.Column('encrypted_bank_details', sa.Text(), nullable=True),
        sa.Column('mobile_money_details', sa.JSON(), nullable=True),
        sa.Column('allow_instant_moncash', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('on_hold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('connected_account_id', sa.String(255), nullable=True),
        sa.Column('verification_status', sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_legacy_payout_configs_organizer_id', 'legacy_payout_configs', ['organizer_id'], unique=True)

    op.create_table(
        'verification_documents',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('doc_type', sa.String(128), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('organizer_id', 'doc_type', name='uq_verification_doc_type'),
    )
    op.create_index('ix_verification_documents_organizer_id', 'verification_documents', ['organizer_id'])

    op.create_table(
        'payout_destinations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('bank_name', sa.String(200), nullable=False),
        sa.Column('account_holder', sa.String(200), nullable=False),
        sa.Column('account_number_last4', sa.String(4), nullable=False),
        sa.Column('account_type', sa.String(32), nullable=True),
        sa.Column('encrypted_details', sa.Text(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_payout_destinations_organizer_id', 'payout_destinations', ['organizer_id'])

    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organizer_id', sa.String(), nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('method', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('fee_cents', sa.Integer(), nullable=True),
        sa.Column('payout_amount_cents', sa.Integer(), nullable=True),
        sa.Column('prefunding_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prefunding_fee_percent', sa.Numeric(6, 4), nullable=True),
        sa.Column('bank_destination_id', sa.String(), nullable=True),
        sa.Column('bank_details', sa.JSON(), nullable=True),
        sa.Column('moncash_number', sa.String(32), nullable=True),
        sa.Column('provider_transaction_id', sa.String(255), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('ledger_deducted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('handed_off_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='check_withdrawal_amount_positive'),
    )
    op.create_index('ix_withdrawal_requests_organizer_id', 'withdrawal_requests', ['organizer_id'])
    op.create_index('ix_withdrawal_requests_event_id', 'withdrawal_requests', ['event_id'])
    op.create_index('ix_withdrawal_requests_event_status', 'withdrawal_requests', ['event_id', 'status'])

    op.create_table(
        'payout_change_verifications',
        sa.Column('organizer_id', sa.String(), primary_key=True),
        sa.Column('code_hash', sa.String(64), nullable=True),
        sa.Column('salt', sa.String(64), nullable=True),
        sa.Column('sent_to', sa.String(255), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('verified_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('payout_change_verifications')
    op.drop_table('withdrawal_requests')
    op.drop_table('payout_destinations')
    op.drop_table('verification_documents')
    op.drop_table('legacy_payout_configs')
    op.drop_table('payout_profiles')
    op.drop_table('event_earnings')
    op.drop_table('ticket_sales')
    op.drop_table('organizers')
    op.drop_table('events')
