# =============================================================================
# LogiBill - Pytest Fixtures Configuration
# =============================================================================

import pytest
from datetime import date
from decimal import Decimal

from app import create_app
from app.extensions import db
from app.models.catalog import ServiceType, Destination
from app.models.client import Client
from app.models.pricing import RateRule
from app.models.shipment import Shipment, ShipmentPackage, ShipmentStatus


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def session(app):
    """Database session for tests."""
    yield db.session


# =============================================================================
# Catalog Fixtures
# =============================================================================

@pytest.fixture
def service_type(app):
    """Standard service (multiplier 1.00, 3-5 days)."""
    st = ServiceType(
        code='STA',
        name='standard',
        display_name='Standard',
        multiplier=Decimal('1.00'),
        min_delivery_days=3,
        max_delivery_days=5,
    )
    db.session.add(st)
    db.session.commit()
    st_id = st.id
    db.session.expire_all()
    return db.session.get(ServiceType, st_id)


@pytest.fixture
def express_type(app):
    """Express service (multiplier 1.50, 1-2 days)."""
    st = ServiceType(
        code='EXP',
        name='express',
        display_name='Express',
        multiplier=Decimal('1.50'),
        min_delivery_days=1,
        max_delivery_days=2,
    )
    db.session.add(st)
    db.session.commit()
    st_id = st.id
    db.session.expire_all()
    return db.session.get(ServiceType, st_id)


@pytest.fixture
def destination(app):
    """Algiers destination."""
    dest = Destination(code='DZ-ALG', city='Alger', country='Algerie', zone='Centre')
    db.session.add(dest)
    db.session.commit()
    dest_id = dest.id
    db.session.expire_all()
    return db.session.get(Destination, dest_id)


@pytest.fixture
def rate_rule(app, service_type, destination):
    """Open-ended rule: base 10, 2/kg, 5/m3, minimum 15, from 2024-01-01."""
    rule = RateRule(
        service_type_id=service_type.id,
        destination_id=destination.id,
        base_rate=Decimal('10.00'),
        weight_rate=Decimal('2.00'),
        volume_rate=Decimal('5.00'),
        min_charge=Decimal('15.00'),
        effective_from=date(2024, 1, 1),
        effective_to=None,
        is_active=True,
    )
    db.session.add(rule)
    db.session.commit()
    rule_id = rule.id
    db.session.expire_all()
    return db.session.get(RateRule, rule_id)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def sample_client(app):
    """Client with a zero balance."""
    c = Client(
        code='CLT000001',
        company_name='Benali Import',
        first_name='Amina',
        last_name='Benali',
        email='contact@benali-import.test',
        city='Alger',
        country='Algerie',
    )
    db.session.add(c)
    db.session.commit()
    client_id = c.id
    db.session.expire_all()
    return db.session.get(Client, client_id)


@pytest.fixture
def other_client(app):
    """Second client, used for ownership checks."""
    c = Client(
        code='CLT000002',
        first_name='Karim',
        last_name='Haddad',
        email='karim.haddad@test.dz',
    )
    db.session.add(c)
    db.session.commit()
    client_id = c.id
    db.session.expire_all()
    return db.session.get(Client, client_id)


# =============================================================================
# Shipment Factory
# =============================================================================

@pytest.fixture
def make_shipment(app, service_type, destination):
    """Factory creating a committed shipment with a fixed HT amount.

    Usage: make_shipment(client, total='100.00', status=ShipmentStatus.DELIVERED)
    Returns the shipment id.
    """
    def _make(owner, total='100.00', status=ShipmentStatus.DELIVERED, is_invoiced=False):
        shipment = Shipment(
            number=Shipment.generate_number(),
            client_id=owner.id,
            service_type_id=service_type.id,
            destination_id=destination.id,
            status=status,
            total_weight=Decimal('1.000'),
            total_volume=Decimal('0.010'),
            base_amount=Decimal(total),
            total_amount=Decimal(total),
            is_invoiced=is_invoiced,
        )
        shipment.packages.append(
            ShipmentPackage(description='Carton', weight=Decimal('1.000'), volume=Decimal('0.010'), quantity=1)
        )
        db.session.add(shipment)
        db.session.commit()
        return shipment.id

    return _make
