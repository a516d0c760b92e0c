# tests/test_ranking.py
from datetime import datetime, timezone

import pytest

from comparison.models import ComparisonView, Product
from comparison.ranking import COLUMNS, best_deal, comparison_frame, comparison_rows

NOW = datetime(2024, 11, 29, tzinfo=timezone.utc)


def _p(pid, platform, price, original_price=None):
    return Product(
        id=pid, name=f"XM5 on {platform}", price=price, currency="USD", platform=platform,
        url=f"https://{platform}.example/{pid}", search_query="XM5",
        original_price=original_price, extracted_at=NOW,
    )


def _view(origin, alts):
    return ComparisonView(
        id="c1", status="completed", search_query="XM5",
        original_product=origin, products=alts, created_at=NOW, completed_at=NOW,
    )


def test_frame_sorted_by_price_with_flags():
    view = _view(_p("o", "amazon", 348.0), [
        _p("a", "ebay", 299.99, original_price=349.99),
        _p("b", "walmart", 329.0),
        _p("c", "target", 299.99),
    ])
    df = comparison_frame(view)

    assert list(df.columns) == COLUMNS
    assert list(df["platform"]) == ["ebay", "target", "walmart", "amazon"]
    assert list(df["is_lowest"]) == [True, True, False, False]
    assert list(df["is_original"]) == [False, False, False, True]
    assert list(df["on_sale"]) == [True, False, False, False]
    assert df["savings"].iloc[-1] == pytest.approx(48.01)


def test_origin_cheapest_is_never_lowest():
    view = _view(_p("o", "amazon", 100.0), [_p("a", "ebay", 120.0)])
    df = comparison_frame(view)
    assert not df["is_lowest"].any()
    assert best_deal(view) is None


def test_best_deal_picks_first_cheapest_alternative():
    a = _p("a", "ebay", 299.99)
    view = _view(_p("o", "amazon", 348.0), [_p("b", "walmart", 329.0), a, _p("c", "target", 299.99)])
    assert best_deal(view).id == "a"


def test_empty_view():
    view = _view(None, [])
    df = comparison_frame(view)
    assert df.empty
    assert list(df.columns) == COLUMNS
    assert best_deal(view) is None


def test_comparison_rows_are_plain_python_values():
    view = _view(_p("o", "amazon", 348.0), [_p("a", "ebay", 299.99, original_price=349.99), _p("b", "walmart", 329.0)])
    rows = comparison_rows(view)

    assert [r["platform"] for r in rows] == ["ebay", "walmart", "amazon"]
    assert rows[0]["original_price"] == 349.99
    assert rows[1]["original_price"] is None
    assert type(rows[0]["is_lowest"]) is bool
    assert type(rows[0]["price"]) is float
