"""
Pytest fixtures for rebates backend tests.

Provides an in-memory application, per-test table cleanup, users for every
role, order/contract factories and bearer-token headers.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from rebates import create_app
from rebates.extensions import db
from rebates.models import Contract, Order, OrderItem
from rebates.permissions import APPROVE_CONTRACTS_CAPABILITY
from rebates.services import auth_service, settings_service, token_service
from rebates.services.rebate_service import compute_rebate, quantize_money
from rebates.time_utils import utcnow


class CollectingNotifier:
    """Records outbound messages; destinations in fail_for raise on send."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, destination, subject, body):
        if destination in self.fail_for:
            raise RuntimeError(f"delivery to {destination} failed")
        self.sent.append({"destination": destination, "subject": subject, "body": body})

    def reset(self):
        self.sent.clear()
        self.fail_for.clear()


@pytest.fixture(scope='session')
def notifier():
    return CollectingNotifier()


@pytest.fixture(scope='session')
def app(notifier):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'NOTIFIER': notifier,
        'JWT_SECRET': 'test-jwt-secret',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, notifier):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        settings_service.invalidate_cache()
        notifier.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# USERS
# =============================================================================


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("staff", email="s@example.com")."""
    counter = {"n": 0}

    def _make(role="user", email=None, password="password123", full_name=None, **fields):
        counter["n"] += 1
        user = auth_service.create_user(
            email=email or f"{role}{counter['n']}@example.com",
            password=password,
            full_name=full_name or f"Test {role.title()} {counter['n']}",
            role=role,
            email_verified=True,
        )
        for key, value in fields.items():
            setattr(user, key, value)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin", email="admin@example.com")


@pytest.fixture(scope='function')
def manager(make_user):
    return make_user("manager", email="manager@example.com")


@pytest.fixture(scope='function')
def staff(make_user):
    return make_user("staff", email="staff@example.com")


@pytest.fixture(scope='function')
def approver_staff(make_user, db_session, admin):
    """Staff member holding the approve_contracts capability."""
    from rebates.models import CapabilityGrant

    user = make_user("staff", email="approver@example.com")
    db_session.add(CapabilityGrant(user_id=user.id, capability=APPROVE_CONTRACTS_CAPABILITY, granted_by=admin.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer(make_user):
    return make_user("user", email="customer@example.com", full_name="Carol Customer")


@pytest.fixture(scope='function')
def other_customer(make_user):
    return make_user("user", email="other@example.com", full_name="Oscar Other")


def auth_headers(user) -> dict:
    """Helper to create Authorization headers for a user."""
    return {'Authorization': f'Bearer {token_service.issue_token(user)}'}


# =============================================================================
# ORDERS / CONTRACTS
# =============================================================================


@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Factory inserting an order directly (bypasses creation rules).

    days_ago sets order_date relative to now; items default to 2 x 50.00.
    """
    counter = {"n": 0}

    def _make(customer, *, created_by=None, days_ago=0, status="pending", items=None,
              percentage="1.00", contract=None, **fields):
        counter["n"] += 1
        items = items or [("Widget", 2, "50.00")]
        total = quantize_money(sum(Decimal(price) * qty for _, qty, price in items))
        order = Order(
            order_number=f"ORD-TEST-{counter['n']:04d}",
            customer_id=customer.id,
            contract_id=contract.id if contract else None,
            created_by=created_by.id if created_by else None,
            order_date=utcnow() - timedelta(days=days_ago),
            total_amount=total,
            rebate_percentage=Decimal(percentage),
            rebate_amount=compute_rebate(total, Decimal(percentage)),
            customer_status=status,
            is_locked=False,
            manually_unlocked=False,
        )
        for name, qty, price in items:
            order.items.append(OrderItem(
                product_name=name,
                quantity=qty,
                unit_price=Decimal(price),
                total_price=quantize_money(Decimal(price) * qty),
            ))
        for key, value in fields.items():
            setattr(order, key, value)
        db_session.add(order)
        db_session.commit()
        return order

    return _make


@pytest.fixture(scope='function')
def make_contract(db_session):
    """Factory inserting a contract directly (bypasses the one-live-contract check)."""
    counter = {"n": 0}

    def _make(customer, *, status="pending", created_by=None, percentage="2.50", **fields):
        counter["n"] += 1
        contract = Contract(
            customer_id=customer.id,
            created_by=created_by.id if created_by else None,
            contract_number=f"CNT-TEST-{counter['n']:04d}",
            start_date=utcnow() - timedelta(days=1),
            end_date=utcnow() + timedelta(days=365),
            rebate_percentage=Decimal(percentage),
            status=status,
        )
        for key, value in fields.items():
            setattr(contract, key, value)
        db_session.add(contract)
        db_session.commit()
        return contract

    return _make


def reload(model, pk):
    """Fresh copy of a row after requests changed it."""
    db.session.expire_all()
    return db.session.get(model, pk)


def order_payload(customer_id, **overrides) -> dict:
    payload = {
        "customer_id": customer_id,
        "order_date": utcnow().strftime("%Y-%m-%dT%H:%M:%S"),
        "items": [
            {"product_name": "Widget", "quantity": 3, "unit_price": 10.5},
            {"product_name": "Gadget", "quantity": 1, "unit_price": 100},
        ],
    }
    payload.update(overrides)
    return payload
