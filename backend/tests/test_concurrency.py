"""
Concurrency tests.

Verifies:
- run_atomic retries conflicts, classifies store failures, always rolls back
- Two cashiers racing for the last units: exactly one sale commits and
  stock never goes negative
- Two payments of the full remaining amount: exactly one is recorded
- Two returns of the last returnable unit: exactly one is refunded
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ledgerpos import create_app
from ledgerpos.errors import ConcurrencyConflict, InsufficientStock, InvalidQuantity, OverpaymentRejected
from ledgerpos.errors import StoreUnavailable, ValidationFailed
from ledgerpos.extensions import db
from ledgerpos.identity import Actor
from ledgerpos.models import Invoice, Product, PurchaseRecord, ReturnRecord, SupplierPayment, TreasuryLog
from ledgerpos.services import authorization_service, purchase_service, return_service, sales_service
from ledgerpos.services import shift_service, staff_service, stock_service, supplier_service
from ledgerpos.services.commands import PurchaseLineRequest, PurchaseRequest, ReturnLineRequest
from ledgerpos.services.commands import SaleLineRequest, SaleRequest, SalesReturnRequest, SupplierPaymentRequest
from ledgerpos.services.concurrency import is_conflict_error, run_atomic


def operational_error(message):
    return OperationalError("UPDATE products", {}, Exception(message))


# =============================================================================
# RUN_ATOMIC
# =============================================================================


class TestRunAtomic:

    def test_conflict_is_retried(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_atomic(flaky, operation="flaky", attempts=3, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_persistent_conflict_surfaces(self, db_session):
        def locked():
            raise operational_error("database is locked")

        with pytest.raises(ConcurrencyConflict) as exc_info:
            run_atomic(locked, operation="locked", attempts=2, backoff_base=0)
        assert exc_info.value.to_dict()["retryable"] is True
        assert exc_info.value.details["attempts"] == 2

    def test_other_store_failures_are_not_retried(self, db_session):
        calls = []

        def broken():
            calls.append(1)
            raise operational_error("unable to open database file")

        with pytest.raises(StoreUnavailable):
            run_atomic(broken, operation="broken", attempts=3, backoff_base=0)
        assert len(calls) == 1

    def test_failure_rolls_back_pending_writes(self, seed, product, db_session):
        def half_done():
            stock_service.increment_stock(stock_service.get_product_for_update(product.id), 10)
            raise ValidationFailed("late failure")

        with pytest.raises(ValidationFailed):
            run_atomic(half_done, operation="half_done")
        assert db_session.get(Product, product.id).stock == 5

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (StaleDataError("x"), True),
            (operational_error("deadlock detected"), True),
            (operational_error("could not serialize access"), True),
            (operational_error("no such table: products"), False),
            (ValueError("x"), False),
        ],
    )
    def test_conflict_classification(self, exc, expected):
        assert is_conflict_error(exc) is expected


# =============================================================================
# RACING SALES
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a file database so two threads hold real connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'LEDGER_CONFLICT_RETRIES': 10,
        'LEDGER_RETRY_BACKOFF': 0.01,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


def race(app, attempts, tolerated):
    """Run each callable in its own thread, released together; collect outcomes."""
    barrier = threading.Barrier(len(attempts))
    outcomes = []

    def run(attempt):
        with app.app_context():
            barrier.wait()
            try:
                attempt()
                outcomes.append("ok")
            except tolerated as exc:
                outcomes.append(type(exc).__name__)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=run, args=(attempt,)) for attempt in attempts]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def seed_race_branch(prefix, role):
    """Branch, super-admin and two users of ROLE; returns (branch, admin, [actors])."""
    authorization_service.ensure_default_roles()
    branch = staff_service.create_branch(name="Race Branch", operational_number="9")
    admin = Actor.from_user(staff_service.create_user(username="admin", role="admin"))
    actors = [
        Actor.from_user(staff_service.create_user(username=f"{prefix}{i}", role=role, branch_id=branch.id))
        for i in (1, 2)
    ]
    return branch, admin, actors


class TestRacingSales:

    def test_last_units_sold_once(self, file_app):
        with file_app.app_context():
            branch, _admin, actors = seed_race_branch("till", "cashier")
            for actor in actors:
                shift_service.open_shift(actor=actor, opening_cents=0)
            product = stock_service.new_product(name="Last Console", retail_price_cents=50000, branch_id=branch.id)
            product.stock = 2
            db.session.commit()
            product_id = product.id

        def sell(actor):
            return lambda: sales_service.process_sale(
                actor=actor,
                request=SaleRequest(lines=[SaleLineRequest(product_id=product_id, quantity=2)]),
            )

        outcomes = race(file_app, [sell(a) for a in actors], (InsufficientStock, ConcurrencyConflict))

        assert outcomes.count("ok") == 1
        assert len(outcomes) == 2

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock == 0
            assert db.session.query(Invoice).count() == 1
            assert db.session.query(TreasuryLog).filter_by(source="sale").count() == 1


class TestRacingPayments:

    def test_remaining_amount_paid_once(self, file_app):
        with file_app.app_context():
            branch, admin, managers = seed_race_branch("buyer", "manager")
            product = stock_service.new_product(name="Router", retail_price_cents=9000, branch_id=branch.id)
            db.session.commit()
            supplier = supplier_service.create_supplier(actor=admin, name="Race Supplies")
            purchase = purchase_service.process_purchase(
                actor=managers[0],
                request=PurchaseRequest(
                    supplier_id=supplier.id,
                    lines=[PurchaseLineRequest(product_id=product.id, quantity=4, cost_cents=5000)],
                    paid_cents=5000,
                ),
            )
            supplier_id, purchase_id = supplier.id, purchase.id

        def pay(actor):
            return lambda: supplier_service.record_supplier_payment(
                actor=actor,
                request=SupplierPaymentRequest(supplier_id=supplier_id, amount_cents=15000, purchase_id=purchase_id),
            )

        outcomes = race(file_app, [pay(m) for m in managers], (OverpaymentRejected, ConcurrencyConflict))

        assert outcomes.count("ok") == 1
        assert len(outcomes) == 2

        with file_app.app_context():
            purchase = db.session.get(PurchaseRecord, purchase_id)
            assert purchase.remaining_cents == 0
            assert purchase.settlement_status == "settled"
            assert db.session.query(SupplierPayment).count() == 1
            assert db.session.query(TreasuryLog).filter_by(source="supplier_payment").count() == 1
            assert supplier_service.supplier_statement(supplier_id)["drift_cents"] == 0


class TestRacingReturns:

    def test_last_returnable_unit_refunded_once(self, file_app):
        with file_app.app_context():
            branch, _admin, actors = seed_race_branch("till", "cashier")
            shift_service.open_shift(actor=actors[0], opening_cents=0)
            product = stock_service.new_product(name="Headset", retail_price_cents=4000, branch_id=branch.id)
            product.stock = 1
            db.session.commit()
            invoice = sales_service.process_sale(
                actor=actors[0],
                request=SaleRequest(lines=[SaleLineRequest(product_id=product.id, quantity=1)]),
            )
            invoice_id, line_id, product_id = invoice.id, invoice.lines[0].id, product.id

        def give_back(actor):
            return lambda: return_service.process_sales_return(
                actor=actor,
                request=SalesReturnRequest(
                    invoice_id=invoice_id, lines=[ReturnLineRequest(line_id=line_id, quantity=1)]
                ),
            )

        outcomes = race(file_app, [give_back(a) for a in actors], (InvalidQuantity, ConcurrencyConflict))

        assert outcomes.count("ok") == 1
        assert len(outcomes) == 2

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock == 1
            assert db.session.query(ReturnRecord).count() == 1
            assert db.session.query(TreasuryLog).filter_by(source="sales_return").count() == 1
