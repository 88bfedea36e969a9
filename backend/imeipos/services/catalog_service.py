# Overview: Read-only catalog boundary used by intake.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import CatalogEntryNotFoundError
from ..extensions import db
from ..models import Product, ProductVariant


@dataclass(frozen=True)
class CatalogSnapshot:
    """Descriptors copied onto inventory units at intake. Never re-synced."""
    product_id: int
    variant_id: int
    product_name: str
    variant_sku: str
    color_name: Optional[str]
    storage_capacity: Optional[str]
    retail_price: int


def get_catalog_snapshot(product_id: int, variant_id: int) -> Optional[CatalogSnapshot]:
    """Snapshot for an active (product, variant) pair, or None."""
    row = (
        db.session.query(Product, ProductVariant)
        .join(ProductVariant, ProductVariant.product_id == Product.id)
        .filter(
            Product.id == product_id,
            ProductVariant.id == variant_id,
            Product.is_active.is_(True),
            ProductVariant.is_active.is_(True),
        )
        .first()
    )
    if row is None:
        return None
    product, variant = row
    return CatalogSnapshot(
        product_id=product.id,
        variant_id=variant.id,
        product_name=product.name,
        variant_sku=variant.sku,
        color_name=variant.color_name,
        storage_capacity=variant.storage_capacity,
        retail_price=int(variant.retail_price),
    )


def resolve_catalog_snapshots(pairs: Iterable[tuple[int, int]]) -> dict[tuple[int, int], CatalogSnapshot]:
    """
    Resolve every (product_id, variant_id) pair or raise CatalogEntryNotFoundError
    naming all the pairs that could not be resolved.
    """
    resolved = {}
    missing = []
    for pair in dict.fromkeys(pairs):
        snapshot = get_catalog_snapshot(*pair)
        if snapshot is None:
            missing.append({"product_id": pair[0], "variant_id": pair[1]})
        else:
            resolved[pair] = snapshot
    if missing:
        raise CatalogEntryNotFoundError(
            "Product or variant not found in catalog",
            details={"missing": missing},
        )
    return resolved
