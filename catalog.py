import json
import os
from functools import lru_cache
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Sellable items
class CategoryDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Unique within the catalog")
    name: str
    price: float = Field(..., ge=0, description="Unit price")


Catalog = Tuple[CategoryDef, ...]

DEFAULT_CATALOG: Catalog = tuple(
    CategoryDef(id=i, name=name, price=price)
    for i, (name, price) in enumerate(
        [
            ("Tea", 10),
            ("Coffee", 20),
            ("Black Coffee", 15),
            ("Cigarette (₹10)", 10),
            ("Cigarette (₹12)", 12),
            ("Cigarette (₹17)", 17),
            ("Cigarette (₹20)", 20),
            ("Biscuits", 5),
            ("Sweet", 5),
            ("Water Bottle (Small)", 10),
            ("Water Bottle (Large)", 20),
            ("Doughnut", 10),
        ],
        start=1,
    )
)


def build_catalog(items: Iterable[dict]) -> Catalog:
    """Validate raw ``{id, name, price}`` dicts into an ordered catalog."""
    catalog = tuple(CategoryDef.model_validate(item) for item in items)
    seen = set()
    for cat in catalog:
        if cat.id in seen:
            raise ValueError(f"Duplicate category id {cat.id} in catalog")
        seen.add(cat.id)
    return catalog


def load_catalog(path: Optional[str] = None) -> Catalog:
    if not path:
        return DEFAULT_CATALOG
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"Catalog file {path} must contain a JSON list")
    return build_catalog(raw)


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    return load_catalog(os.getenv("CATALOG_PATH"))
