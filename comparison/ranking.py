# comparison/ranking.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from comparison.models import ComparisonView, Product

COLUMNS = [
    "name",
    "platform",
    "price",
    "currency",
    "original_price",
    "url",
    "is_original",
    "is_lowest",
    "savings",
    "on_sale",
]


def _row(p: Product, is_original: bool) -> dict:
    return {
        "name": p.name,
        "platform": p.platform,
        "price": float(p.price),
        "currency": p.currency,
        "original_price": p.original_price,
        "url": p.url,
        "is_original": is_original,
    }


def comparison_frame(view: ComparisonView) -> pd.DataFrame:
    """
    Origin product plus alternatives, cheapest first. Rows at the same
    price keep their insertion order (origin first, then platform order).
    """
    rows = []
    if view.original_product is not None:
        rows.append(_row(view.original_product, True))
    rows.extend(_row(p, False) for p in view.products)

    if not rows:
        return pd.DataFrame(columns=COLUMNS)

    df = pd.DataFrame(rows)
    df["original_price"] = pd.to_numeric(df["original_price"], errors="coerce")
    df = df.sort_values("price", kind="mergesort").reset_index(drop=True)

    lowest = df["price"].min()
    df["is_lowest"] = (~df["is_original"]) & (df["price"] == lowest)
    df["savings"] = (df["price"] - lowest).round(2)
    df["on_sale"] = df["original_price"].notna() & (df["original_price"] > df["price"])
    return df[COLUMNS]


def best_deal(view: ComparisonView) -> Optional[Product]:
    """Cheapest alternative that beats the origin price; None if nothing does."""
    if view.original_product is None or not view.products:
        return None
    cheapest = min(view.products, key=lambda p: p.price)
    if cheapest.price < view.original_product.price:
        return cheapest
    return None


def comparison_rows(view: ComparisonView) -> List[Dict[str, Any]]:
    """`comparison_frame` as plain dicts; missing values become None."""
    df = comparison_frame(view).astype(object)
    return df.where(df.notna(), None).to_dict("records")
