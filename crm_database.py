# crm_database.py

from extensions import db
from utils.datetime_utils import utc_now


class Property(db.Model):
    """Apartment community / street address. Parent of floor plans and units."""
    __tablename__ = 'listing_property'

    # Deterministic string id (see services.listing_grouping.generate_property_id)
    id = db.Column(db.String(80), primary_key=True)

    # Identity
    name = db.Column(db.String(200), nullable=False)
    street_address = db.Column(db.String(200), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(2), nullable=True)
    zip_code = db.Column(db.String(10), nullable=True)
    market = db.Column(db.String(100), nullable=True)
    neighborhood = db.Column(db.String(100), nullable=True)
    property_type = db.Column(db.String(50), nullable=True)  # 'Apartment', 'Condo', ...

    # Geographic coordinates
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    # Aggregated ranges across units
    rent_min = db.Column(db.Integer, nullable=True)
    rent_max = db.Column(db.Integer, nullable=True)
    beds_min = db.Column(db.Float, nullable=True)
    beds_max = db.Column(db.Float, nullable=True)
    baths_min = db.Column(db.Float, nullable=True)
    baths_max = db.Column(db.Float, nullable=True)
    sqft_min = db.Column(db.Integer, nullable=True)
    sqft_max = db.Column(db.Integer, nullable=True)
    photos = db.Column(db.JSON, nullable=True)  # capped at 10 URLs

    # Descriptive / leasing details (CSV pass-through)
    description = db.Column(db.Text, nullable=True)
    amenities = db.Column(db.JSON, nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    contact_email = db.Column(db.String(120), nullable=True)
    leasing_link = db.Column(db.String(500), nullable=True)
    is_pumi = db.Column(db.Boolean, default=False)
    commission_pct = db.Column(db.Float, nullable=True)

    # Provenance
    import_source = db.Column(db.String(50), nullable=True, index=True)  # 'rentcast', 'csv', 'manual'
    external_id = db.Column(db.String(100), nullable=True)
    last_refreshed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Audit fields
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utc_now)

    floor_plans = db.relationship('FloorPlan', backref='property', lazy=True, cascade="all, delete-orphan")
    units = db.relationship('Unit', backref='property', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Property {self.id}: {self.name}, {self.city} {self.state}>'

    def has_valid_coordinates(self):
        """Check if property has valid geographic coordinates"""
        if self.latitude is not None and self.longitude is not None:
            return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180
        return False


class FloorPlan(db.Model):
    """A distinct (beds, baths) configuration within a property."""
    __tablename__ = 'floor_plan'

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.String(80), db.ForeignKey('listing_property.id', ondelete='CASCADE'),
                            nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)  # e.g. "2BR/2BA"
    beds = db.Column(db.Float, nullable=False, default=0)
    baths = db.Column(db.Float, nullable=False, default=1)
    sqft = db.Column(db.Integer, nullable=True)
    market_rent = db.Column(db.Integer, nullable=True)
    starting_at = db.Column(db.Integer, nullable=True)
    units_available = db.Column(db.Integer, default=0)

    # Concessions
    has_concession = db.Column(db.Boolean, default=False)
    concession_type = db.Column(db.String(50), nullable=True)  # free_weeks, fee_waiver, dollar_off, percentage_off
    concession_value = db.Column(db.String(100), nullable=True)
    concession_description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utc_now)

    units = db.relationship('Unit', backref='floor_plan', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f'<FloorPlan {self.id}: {self.name} ({self.property_id})>'


class Unit(db.Model):
    """One rentable unit. Unit numbers are unique within a property."""
    __tablename__ = 'unit'

    id = db.Column(db.Integer, primary_key=True)
    floor_plan_id = db.Column(db.Integer, db.ForeignKey('floor_plan.id', ondelete='CASCADE'),
                              nullable=False, index=True)
    property_id = db.Column(db.String(80), db.ForeignKey('listing_property.id', ondelete='CASCADE'),
                            nullable=False, index=True)

    unit_number = db.Column(db.String(50), nullable=False)
    floor = db.Column(db.Integer, nullable=True)
    rent = db.Column(db.Integer, nullable=True)
    market_rent = db.Column(db.Integer, nullable=True)
    available_from = db.Column(db.Date, nullable=True)
    is_available = db.Column(db.Boolean, default=True)
    status = db.Column(db.String(20), nullable=True, default='available')  # available, pending, leased, unavailable
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint('property_id', 'unit_number', name='uq_unit_property_unit_number'),
    )

    def __repr__(self):
        return f'<Unit {self.unit_number} ({self.property_id})>'
