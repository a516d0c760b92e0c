# tests/test_db.py
import pytest

from comparison.models import ProductFields


def _fields(**over):
    base = dict(
        name="Sony WH-1000XM5", price=348.0, currency="USD", platform="amazon",
        url="https://www.amazon.com/dp/B0BXYCS74H", search_query="Sony WH-1000XM5",
    )
    base.update(over)
    return ProductFields(**base)


def test_product_roundtrip_keeps_absent_optionals_absent(store):
    pid = store.insert_product(_fields(brand="Sony"))
    p = store.get_product(pid)

    assert p.id == pid
    assert p.brand == "Sony"
    assert p.original_price is None
    assert p.image_url is None
    assert p.availability is True
    assert p.extracted_at is not None


def test_insert_product_rejects_explicit_nulls(store):
    record = _fields().model_dump(exclude_none=True)
    record["brand"] = None
    with pytest.raises(ValueError, match="brand"):
        store.insert_product(record)


def test_insert_product_validates_shape(store):
    record = _fields().to_record()
    record["price"] = -1
    with pytest.raises(ValueError):
        store.insert_product(record)


def test_get_missing_rows_return_none(store):
    assert store.get_product("nope") is None
    assert store.get_comparison("nope") is None
    assert store.get_search("nope") is None


def test_search_record_lifecycle(store):
    sid = store.insert_search("https://www.amazon.com/dp/B0BXYCS74H", user_agent="ua", ip="10.0.0.1")
    s = store.get_search(sid)
    assert s.successful is False
    assert s.comparison_id is None

    store.update_search_status(sid, False, error="Request timeout")
    assert store.get_search(sid).error == "Request timeout"

    store.update_search_status(sid, True)
    s = store.get_search(sid)
    assert s.successful is True
    assert s.error is None


def test_update_unknown_search_raises(store):
    with pytest.raises(KeyError):
        store.update_search_status("nope", True)


def test_comparison_status_transitions(store):
    pid = store.insert_product(_fields())
    cid = store.insert_comparison(pid, "Sony WH-1000XM5")

    record = store.get_comparison_record(cid)
    assert record.status == "searching"
    assert record.product_ids == []
    assert record.completed_at is None

    store.update_comparison(cid, "completed", [])
    record = store.get_comparison_record(cid)
    assert record.status == "completed"
    assert record.completed_at is not None

    with pytest.raises(ValueError):
        store.update_comparison(cid, "failed", [], "late failure")


def test_update_unknown_comparison_raises(store):
    with pytest.raises(KeyError):
        store.update_comparison("nope", "completed", [])


def test_get_comparison_resolves_and_drops_dangling_ids(store):
    origin = store.insert_product(_fields())
    alt = store.insert_product(_fields(platform="ebay", url="https://www.ebay.com/itm/1", price=279.99))
    cid = store.insert_comparison(origin, "Sony WH-1000XM5")
    store.update_comparison(cid, "completed", [alt, "deleted-id"])

    view = store.get_comparison(cid)
    assert view.original_product.id == origin
    assert [p.id for p in view.products] == [alt]
    assert view.products[0].platform == "ebay"
