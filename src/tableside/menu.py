"""Menu search, filtering and sectioning."""

from .models import Product

ALL_CATEGORIES = "All"
FALLBACK_CATEGORY = "Other"


def _category(product: Product) -> str:
    return product.category or FALLBACK_CATEGORY


def categories(products: list[Product]) -> list[str]:
    """Category tabs: "All" first, then categories in order of first appearance."""
    seen: list[str] = []
    for product in products:
        cat = _category(product)
        if cat not in seen:
            seen.append(cat)
    return [ALL_CATEGORIES] + seen


def filter_products(
    products: list[Product], query: str = "", category: str = ALL_CATEGORIES
) -> list[Product]:
    """
    Filter by a case-insensitive search over name and description, then by category.
    """
    needle = query.strip().lower()
    result = []
    for product in products:
        if needle:
            haystack = product.name.lower()
            if product.description:
                haystack += "\n" + product.description.lower()
            if needle not in haystack:
                continue
        if category != ALL_CATEGORIES and _category(product) != category:
            continue
        result.append(product)
    return result


def group_by_category(products: list[Product]) -> list[tuple[str, list[Product]]]:
    """Group products into (category, products) sections sorted by category name."""
    grouped: dict[str, list[Product]] = {}
    for product in products:
        grouped.setdefault(_category(product), []).append(product)
    return [(name, grouped[name]) for name in sorted(grouped)]
