"""Tests for bulk variant generation."""
import pytest
from sqlalchemy.exc import IntegrityError

from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.models.audit_log import AuditLog
from backoffice.models.variant import ProductVariant
from backoffice.extensions import db as _db
from backoffice.services import variant_matrix, variant_service


def _combo(size, color):
    return {"Size": size, "Color": color}


def test_sneaker_matrix_collapses_duplicates(sneaker):
    result = variant_matrix.generate_matrix(
        sneaker.id,
        [_combo(8, "Black"), _combo(9, "White"), _combo(8, "Black")],
    )

    assert len(result.created) == 2
    assert result.skipped == []
    assert {tuple(v.attribute_selection.items()) for v in result.created} == {
        (("Size", "8"), ("Color", "Black")),
        (("Size", "9"), ("Color", "White")),
    }
    for v in result.created:
        assert v.stock_quantity == 0
        assert v.version == 1
    assert ProductVariant.query.filter_by(product_id=sneaker.id).count() == 2


def test_regenerating_is_a_noop(sneaker):
    combos = [_combo("8", "Black"), _combo("9", "White")]
    first = variant_matrix.generate_matrix(sneaker.id, combos)
    second = variant_matrix.generate_matrix(sneaker.id, combos)

    assert len(first.created) == 2
    assert second.created == []
    assert len(second.skipped) == 2
    assert ProductVariant.query.count() == 2


def test_overlapping_combinations_only_add_new(sneaker):
    variant_matrix.generate_matrix(sneaker.id, [_combo("8", "Black")])
    result = variant_matrix.generate_matrix(
        sneaker.id, [_combo("8", "Black"), _combo("8", "White")]
    )

    assert [v.attribute_selection for v in result.created] == [
        {"Size": "8", "Color": "White"}
    ]
    assert len(result.skipped) == 1


def test_key_order_and_whitespace_do_not_matter(sneaker):
    result = variant_matrix.generate_matrix(
        sneaker.id,
        [{"Color": "Black", "Size": "8"}, {" Size ": 8, "Color": " Black "}],
    )
    assert len(result.created) == 1
    # Stored in the product's declared attribute order
    assert list(result.created[0].attribute_selection) == ["Size", "Color"]


def test_empty_combination_list(sneaker):
    result = variant_matrix.generate_matrix(sneaker.id, [])
    assert result.created == []
    assert result.skipped == []
    assert AuditLog.query.filter_by(action="GENERATE_MATRIX").count() == 0


def test_default_stock_applies_to_new_variants(sneaker):
    result = variant_matrix.generate_matrix(
        sneaker.id, [_combo("10", "White")], default_stock=7, created_by="admin-1"
    )
    variant = result.created[0]
    assert variant.stock_quantity == 7
    assert variant.created_by == "admin-1"

    entry = AuditLog.query.filter_by(action="GENERATE_MATRIX").one()
    assert entry.actor == "admin-1"
    assert entry.payload["created"] == [variant.sku]


@pytest.mark.parametrize(
    "combo",
    [
        {"Size": "8"},  # missing Color
        {"Size": "8", "Color": "Black", "Material": "Canvas"},  # not declared
        {"Size": "12", "Color": "Black"},  # not a permitted value
        {"Size": "8", "Color": None},
        ["8", "Black"],
    ],
)
def test_invalid_combination_rejects_whole_batch(sneaker, combo):
    with pytest.raises(ValidationError):
        variant_matrix.generate_matrix(sneaker.id, [_combo("9", "White"), combo])
    assert ProductVariant.query.count() == 0


def test_negative_default_stock(sneaker):
    with pytest.raises(ValidationError):
        variant_matrix.generate_matrix(sneaker.id, [_combo("8", "Black")], default_stock=-1)


def test_unknown_product(db):
    with pytest.raises(NotFoundError):
        variant_matrix.generate_matrix("no-such-product", [_combo("8", "Black")])


def test_sku_is_deterministic_and_distinct(sneaker):
    a = variant_matrix.derive_sku(sneaker, {"Size": "8", "Color": "Black"})
    b = variant_matrix.derive_sku(sneaker, {"Color": "Black", "Size": "8"})
    c = variant_matrix.derive_sku(sneaker, {"Size": "8", "Color": "White"})

    assert a == b
    assert a != c
    assert a.startswith("SNK100-BLACK-8-")


def test_sku_survives_delete_and_regenerate(sneaker):
    created = variant_matrix.generate_matrix(sneaker.id, [_combo("9", "Black")]).created
    first_id, sku = created[0].id, created[0].sku
    variant_service.delete_variant(first_id, reservations_cleared=True)

    again = variant_matrix.generate_matrix(sneaker.id, [_combo("9", "Black")]).created
    assert again[0].sku == sku
    assert again[0].id != first_id


def test_sku_taken_by_other_variant_is_a_conflict(db, sneaker, make_product):
    other = make_product("OTHER-1")
    # A foreign row squatting on the SKU the matrix would assign
    squatter = ProductVariant(
        product_id=other.id,
        attribute_selection={"Size": "9", "Color": "White"},
        selection_signature="squatter",
        sku=variant_matrix.derive_sku(sneaker, {"Size": "9", "Color": "White"}),
    )
    db.session.add(squatter)
    db.session.commit()

    with pytest.raises(ConflictError) as exc:
        variant_matrix.generate_matrix(
            sneaker.id, [_combo("8", "Black"), _combo("9", "White")]
        )

    assert exc.value.details["variant_id"] == squatter.id
    # All or nothing: (8, Black) was not created either
    assert ProductVariant.query.filter_by(product_id=sneaker.id).count() == 0


def _unique_violation():
    return IntegrityError(
        "INSERT INTO product_variants", {}, Exception("UNIQUE constraint failed")
    )


def test_unique_race_is_retried_and_skips_winner(sneaker, monkeypatch):
    combos = [_combo("8", "Black"), _combo("9", "White")]
    real_persist = variant_matrix._persist_matrix
    calls = []

    def racing(product, selections, *args):
        calls.append(list(selections))
        if len(calls) == 1:
            # A concurrent generator commits (8, Black) just before our commit
            first = dict(list(selections.items())[:1])
            real_persist(product, first, *args)
            raise _unique_violation()
        return real_persist(product, selections, *args)

    monkeypatch.setattr(variant_matrix, "_persist_matrix", racing)
    result = variant_matrix.generate_matrix(sneaker.id, combos)

    assert len(calls) == 2
    assert [v.attribute_selection for v in result.created] == [
        {"Size": "9", "Color": "White"}
    ]
    assert len(result.skipped) == 1
    assert ProductVariant.query.filter_by(product_id=sneaker.id).count() == 2


def test_second_unique_race_is_a_conflict_and_writes_nothing(sneaker, monkeypatch):
    def collide():
        raise _unique_violation()

    monkeypatch.setattr(_db.session, "commit", collide)
    with pytest.raises(ConflictError):
        variant_matrix.generate_matrix(
            sneaker.id,
            [_combo("8", "Black"), _combo("9", "White"), _combo("10", "Black")],
        )
    monkeypatch.undo()

    assert ProductVariant.query.count() == 0
    assert AuditLog.query.filter_by(action="GENERATE_MATRIX").count() == 0


def test_attribute_given_twice_after_stripping(sneaker):
    with pytest.raises(ValidationError):
        variant_matrix.generate_matrix(
            sneaker.id, [{"Size": "8", " Size ": "9", "Color": "Black"}]
        )
    assert ProductVariant.query.count() == 0
