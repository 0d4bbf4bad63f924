"""Per-report product lookup cache."""
from __future__ import annotations

from typing import Callable, Iterable

from .models import Product

ProductFetcher = Callable[[str], "Product | None"]


class ProductCatalog:
    """Resolves product ids to non-deleted products.

    Every distinct id reaches ``fetcher`` at most once; misses are remembered
    too, so a line item pointing at a removed product costs a single lookup.
    A catalog lives for one report request and is never shared.
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        *,
        fetcher: ProductFetcher | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._by_id: dict[str, Product | None] = {}
        for product in products:
            self._by_id[product.id] = None if product.is_deleted else product

    def get(self, product_id: str) -> Product | None:
        if product_id in self._by_id:
            return self._by_id[product_id]
        product = self._fetcher(product_id) if self._fetcher else None
        if product is not None and product.is_deleted:
            product = None
        self._by_id[product_id] = product
        return product

    def name_of(self, product_id: str) -> str | None:
        product = self.get(product_id)
        return product.name if product else None


__all__ = ["ProductCatalog", "ProductFetcher"]
