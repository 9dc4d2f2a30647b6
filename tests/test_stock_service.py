"""Tests for set/adjust stock and the optimistic retry loop.

Races are reproduced deterministically: read_stock is wrapped so that a
competing writer commits between our read and our conditional write.
"""
import pytest

import backoffice.extensions as ext
from backoffice.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from backoffice.extensions import db as _db
from backoffice.models.audit_log import AuditLog
from backoffice.models.variant import ProductVariant
from backoffice.services import stock_service, variant_matrix
from backoffice.workers.stock_alerts import record_low_stock


@pytest.fixture
def variant(sneaker):
    result = variant_matrix.generate_matrix(
        sneaker.id, [{"Size": "9", "Color": "Black"}], default_stock=5
    )
    return result.created[0]


def _reload(variant_id):
    return _db.session.get(ProductVariant, variant_id, populate_existing=True)


def _race_once(monkeypatch, competing_write):
    """Run competing_write right after the first read_stock call."""
    real_read = stock_service.read_stock
    state = {"raced": False, "reads": 0}

    def racing_read(variant_id):
        state["reads"] += 1
        row = real_read(variant_id)
        if not state["raced"]:
            state["raced"] = True
            competing_write(variant_id)
        return row

    monkeypatch.setattr(stock_service, "read_stock", racing_read)
    return state


def test_set_stock(variant):
    updated = stock_service.set_stock(variant.id, 42, actor="admin-1")
    assert updated.stock_quantity == 42
    assert updated.version == 2

    entry = AuditLog.query.filter_by(action="SET_STOCK").one()
    assert entry.actor == "admin-1"
    assert entry.payload == {"quantity": 42, "old": 5, "new": 42, "version": 2}


def test_set_stock_to_zero(variant):
    assert stock_service.set_stock(variant.id, 0).stock_quantity == 0


@pytest.mark.parametrize("quantity", [-1, 2.5, "3", True, None])
def test_set_stock_rejects_bad_quantity(variant, quantity):
    with pytest.raises(ValidationError):
        stock_service.set_stock(variant.id, quantity)

    reloaded = _reload(variant.id)
    assert reloaded.stock_quantity == 5
    assert reloaded.version == 1


def test_adjust_stock_both_directions(variant):
    assert stock_service.adjust_stock(variant.id, -2).stock_quantity == 3
    updated = stock_service.adjust_stock(variant.id, 4)
    assert updated.stock_quantity == 7
    assert updated.version == 3


def test_adjust_to_exactly_zero(variant):
    assert stock_service.adjust_stock(variant.id, -5).stock_quantity == 0


def test_adjust_below_zero_fails_with_details(variant):
    with pytest.raises(InsufficientStockError) as exc:
        stock_service.adjust_stock(variant.id, -6)

    err = exc.value
    assert err.variant_id == variant.id
    assert err.requested == -6
    assert err.available == 5
    assert err.shortfall == 1
    assert err.to_dict()["error"] == "insufficient_stock"

    reloaded = _reload(variant.id)
    assert reloaded.stock_quantity == 5
    assert reloaded.version == 1


def test_adjust_rejects_non_integer(variant):
    with pytest.raises(ValidationError):
        stock_service.adjust_stock(variant.id, 1.5)


def test_unknown_variant(db):
    with pytest.raises(NotFoundError):
        stock_service.set_stock("missing", 1)
    with pytest.raises(NotFoundError):
        stock_service.adjust_stock("missing", 1)


def test_racing_decrement_rechecks_fresh_quantity(variant, monkeypatch):
    """5 in stock, -3 and -4 race: -3 wins, -4 must fail against 2."""
    state = _race_once(
        monkeypatch, lambda vid: stock_service.adjust_stock(vid, -3)
    )

    with pytest.raises(InsufficientStockError) as exc:
        stock_service.adjust_stock(variant.id, -4)

    assert exc.value.available == 2
    assert exc.value.shortfall == 2
    assert state["reads"] == 3  # ours, the competitor's, our retry

    reloaded = _reload(variant.id)
    assert reloaded.stock_quantity == 2
    assert reloaded.version == 2


def test_racing_increments_are_not_lost(variant, monkeypatch):
    _race_once(monkeypatch, lambda vid: stock_service.adjust_stock(vid, 3))

    updated = stock_service.adjust_stock(variant.id, 2)

    assert updated.stock_quantity == 10
    assert updated.version == 3


def test_set_after_racing_adjust_still_wins(variant, monkeypatch):
    _race_once(monkeypatch, lambda vid: stock_service.adjust_stock(vid, -1))

    updated = stock_service.set_stock(variant.id, 20)

    assert updated.stock_quantity == 20
    assert updated.version == 3
    assert AuditLog.query.filter_by(action="SET_STOCK").one().payload["old"] == 4


def test_gives_up_after_bounded_attempts(app, variant, monkeypatch):
    real_read = stock_service.read_stock
    reads = []

    def always_stale(variant_id):
        row = real_read(variant_id)
        reads.append(row)
        # Someone else bumps the version every time we look.
        _db.session.execute(
            _db.update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(version=ProductVariant.version + 1)
            .execution_options(synchronize_session=False)
        )
        _db.session.commit()
        return row

    monkeypatch.setattr(stock_service, "read_stock", always_stale)

    with pytest.raises(ConcurrencyConflictError) as exc:
        stock_service.adjust_stock(variant.id, -1)

    assert exc.value.attempts == app.config["STOCK_MAX_ATTEMPTS"]
    assert len(reads) == app.config["STOCK_MAX_ATTEMPTS"]
    assert _reload(variant.id).stock_quantity == 5


class RecordingQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args))


def test_crossing_low_stock_threshold_enqueues_alert(variant, monkeypatch):
    queue = RecordingQueue()
    monkeypatch.setattr(ext, "task_queue", queue)

    stock_service.set_stock(variant.id, 10)
    assert queue.jobs == []

    stock_service.adjust_stock(variant.id, -6)  # 10 -> 4, threshold 5
    stock_service.adjust_stock(variant.id, -1)  # already below, no repeat

    assert queue.jobs == [(record_low_stock, (variant.id, 4, 5))]
