"""Create listing property, floor plan and unit tables

Revision ID: 000_listing_tables
Revises:
Create Date: 2025-10-20

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '000_listing_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('listing_property',
        sa.Column('id', sa.String(length=80), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('street_address', sa.String(length=200), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('zip_code', sa.String(length=10), nullable=True),
        sa.Column('market', sa.String(length=100), nullable=True),
        sa.Column('neighborhood', sa.String(length=100), nullable=True),
        sa.Column('property_type', sa.String(length=50), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('rent_min', sa.Integer(), nullable=True),
        sa.Column('rent_max', sa.Integer(), nullable=True),
        sa.Column('beds_min', sa.Float(), nullable=True),
        sa.Column('beds_max', sa.Float(), nullable=True),
        sa.Column('baths_min', sa.Float(), nullable=True),
        sa.Column('baths_max', sa.Float(), nullable=True),
        sa.Column('sqft_min', sa.Integer(), nullable=True),
        sa.Column('sqft_max', sa.Integer(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('contact_email', sa.String(length=120), nullable=True),
        sa.Column('leasing_link', sa.String(length=500), nullable=True),
        sa.Column('is_pumi', sa.Boolean(), nullable=True),
        sa.Column('commission_pct', sa.Float(), nullable=True),
        sa.Column('import_source', sa.String(length=50), nullable=True),
        sa.Column('external_id', sa.String(length=100), nullable=True),
        sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_listing_property_import_source', 'listing_property', ['import_source'])

    op.create_table('floor_plan',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.String(length=80), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('beds', sa.Float(), nullable=False),
        sa.Column('baths', sa.Float(), nullable=False),
        sa.Column('sqft', sa.Integer(), nullable=True),
        sa.Column('market_rent', sa.Integer(), nullable=True),
        sa.Column('starting_at', sa.Integer(), nullable=True),
        sa.Column('units_available', sa.Integer(), nullable=True),
        sa.Column('has_concession', sa.Boolean(), nullable=True),
        sa.Column('concession_type', sa.String(length=50), nullable=True),
        sa.Column('concession_value', sa.String(length=100), nullable=True),
        sa.Column('concession_description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['listing_property.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_floor_plan_property_id', 'floor_plan', ['property_id'])

    op.create_table('unit',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('floor_plan_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.String(length=80), nullable=False),
        sa.Column('unit_number', sa.String(length=50), nullable=False),
        sa.Column('floor', sa.Integer(), nullable=True),
        sa.Column('rent', sa.Integer(), nullable=True),
        sa.Column('market_rent', sa.Integer(), nullable=True),
        sa.Column('available_from', sa.Date(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['floor_plan_id'], ['floor_plan.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['listing_property.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('property_id', 'unit_number', name='uq_unit_property_unit_number')
    )
    op.create_index('ix_unit_floor_plan_id', 'unit', ['floor_plan_id'])
    op.create_index('ix_unit_property_id', 'unit', ['property_id'])


def downgrade():
    op.drop_index('ix_unit_property_id', table_name='unit')
    op.drop_index('ix_unit_floor_plan_id', table_name='unit')
    op.drop_table('unit')
    op.drop_index('ix_floor_plan_property_id', table_name='floor_plan')
    op.drop_table('floor_plan')
    op.drop_index('ix_listing_property_import_source', table_name='listing_property')
    op.drop_table('listing_property')
