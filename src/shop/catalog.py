# src/shop/catalog.py
"""
Catalog filter/sort pipeline.

Everything here is a pure function of its inputs so the shop screen can just
call derive_visible_products() again whenever the catalog or a filter changes.
"""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from shop.models import Order, Product

DEFAULT_PRICE_CEILING = 100000

NO_MATCHES = "No products match these filters."
NO_PRODUCTS = "No products available."


class SortCriterion(str, Enum):
    CATEGORY = "category"
    BEST_SELLING = "best-selling"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"

    @property
    def label(self) -> str:
        return {
            SortCriterion.CATEGORY: "Category",
            SortCriterion.BEST_SELLING: "Best selling",
            SortCriterion.PRICE_ASC: "Price: low to high",
            SortCriterion.PRICE_DESC: "Price: high to low",
            SortCriterion.NAME_ASC: "Name: A to Z",
            SortCriterion.NAME_DESC: "Name: Z to A",
        }[self]


@dataclass(frozen=True)
class FilterState:
    """
    User-chosen narrowing and sorting for the shop view.

    max_price None means no ceiling; the shop screen sets it to
    price_ceiling() of the whole catalog once products are loaded.
    """

    category: Optional[str] = None
    search: str = ""
    max_price: Optional[int] = None
    manufacturers: FrozenSet[str] = field(default_factory=frozenset)
    distributors: FrozenSet[str] = field(default_factory=frozenset)
    sort: SortCriterion = SortCriterion.CATEGORY

    def cleared(self, max_price: Optional[int]) -> FilterState:
        """Defaults for everything the user picked on the shop screen.

        The category comes from navigation and is kept.
        """
        return FilterState(category=self.category, max_price=max_price)

    def with_category(self, category: Optional[str], max_price: Optional[int]) -> FilterState:
        # checkbox choices belong to the previous category, drop them
        return replace(
            self,
            category=category,
            max_price=max_price,
            manufacturers=frozenset(),
            distributors=frozenset(),
        )

    def toggled(self, kind: str, value: str, checked: bool) -> FilterState:
        current = set(getattr(self, kind))
        if checked:
            current.add(value)
        else:
            current.discard(value)
        return replace(self, **{kind: frozenset(current)})


def _matches_search(product: Product, term: str) -> bool:
    for value in (
        product.name,
        product.code,
        product.manufacturer,
        product.description,
    ):
        if value and term in value.lower():
            return True
    return False


def name_sort_key(name: str) -> Tuple[str, str]:
    """Accent and case insensitive key, so "Árbol" sorts next to "arbol"."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    # original name breaks ties deterministically
    return folded.casefold(), name or ""


def narrow_by_category(products: Iterable[Product], category: Optional[str]) -> List[Product]:
    if not category:
        return list(products)
    return [p for p in products if p.category == category]


def derive_visible_products(
    products: Sequence[Product],
    state: FilterState,
    popularity: Optional[Mapping[str, int]] = None,
) -> List[Product]:
    """
    Narrow the full catalog by category, search, price ceiling, manufacturer
    and distributor, in that order, then sort.

    The sort is stable, so for every criterion equal elements keep catalog
    order. ``popularity`` maps product code to units sold and is only used by
    the best-selling criterion.
    """
    result = narrow_by_category(products, state.category)

    term = (state.search or "").strip().lower()
    if term:
        result = [p for p in result if _matches_search(p, term)]

    if state.max_price is not None:
        result = [p for p in result if p.price <= state.max_price]

    if state.manufacturers:
        result = [p for p in result if p.manufacturer in state.manufacturers]

    if state.distributors:
        result = [p for p in result if p.distributor in state.distributors]

    return sort_products(result, state.sort, popularity)


def sort_products(
    products: List[Product],
    criterion: SortCriterion,
    popularity: Optional[Mapping[str, int]] = None,
) -> List[Product]:
    if criterion == SortCriterion.PRICE_ASC:
        return sorted(products, key=lambda p: p.price)
    if criterion == SortCriterion.PRICE_DESC:
        return sorted(products, key=lambda p: p.price, reverse=True)
    if criterion == SortCriterion.NAME_ASC:
        return sorted(products, key=lambda p: name_sort_key(p.name))
    if criterion == SortCriterion.NAME_DESC:
        return sorted(products, key=lambda p: name_sort_key(p.name), reverse=True)
    if criterion == SortCriterion.BEST_SELLING:
        sold = popularity or {}
        return sorted(products, key=lambda p: sold.get(p.code, 0), reverse=True)
    # category: narrowing order, which is catalog order
    return list(products)


def popularity_from_orders(orders: Iterable[Order]) -> Dict[str, int]:
    """Units ordered per product code, summed over every line of every order."""
    sold: Dict[str, int] = {}
    for order in orders:
        for line in order.lines:
            if line.quantity > 0:
                sold[line.code] = sold.get(line.code, 0) + line.quantity
    return sold


def price_ceiling(products: Sequence[Product]) -> int:
    """Slider bound: the highest price of the whole, unfiltered catalog."""
    if not products:
        return DEFAULT_PRICE_CEILING
    return max(p.price for p in products)


def filter_options(
    products: Sequence[Product], category: Optional[str]
) -> Tuple[List[str], List[str]]:
    """
    Manufacturers and distributors on offer for the checkboxes.

    Only the category-narrowed catalog is considered, so the checkboxes
    never offer a value that cannot match in the current category.
    """
    scoped = narrow_by_category(products, category)
    manufacturers = sorted({p.manufacturer for p in scoped if p.manufacturer})
    distributors = sorted({p.distributor for p in scoped if p.distributor})
    return manufacturers, distributors


def categories(products: Sequence[Product]) -> List[str]:
    seen: List[str] = []
    for p in products:
        if p.category and p.category not in seen:
            seen.append(p.category)
    return seen


def format_category(category: str) -> str:
    """consolas_ps5 -> Consolas Ps5"""
    return " ".join(w.capitalize() for w in category.replace("_", " ").split())


def empty_state(catalog_size: int, visible_count: int) -> Optional[str]:
    """
    Message for a result list with nothing in it, None when there are rows.
    A catalog narrowed down to nothing is told apart from an empty catalog,
    only the former can be fixed by clearing the filters.
    """
    if visible_count:
        return None
    if catalog_size:
        return NO_MATCHES
    return NO_PRODUCTS
