"""
Inventory Context Builder.

Reads the catalog into InventoryFact snapshots and renders them as the
compact product lines embedded in the system prompt. Store errors propagate;
callers turn them into an explanatory reply.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Product
from .tasks.models import InventoryFact


def query_products(db: Session, category: Optional[str] = None) -> List[Product]:
    """Catalog rows in display order (category, then name), case-insensitive filter."""
    query = db.query(Product)
    if category:
        query = query.filter(func.lower(Product.category) == category.strip().lower())
    return query.order_by(Product.category, Product.name).all()


def load_inventory_facts(db: Session, category: Optional[str] = None) -> List[InventoryFact]:
    """Snapshot the catalog, optionally limited to one category.

    Out-of-stock products are included with their stock flag so the model can
    tell the customer rather than pretend the product does not exist.
    """
    products = query_products(db, category)

    return [
        InventoryFact(
            id=p.id,
            name=p.name,
            unit_price=Decimal(p.price),
            unit=p.unit or "kg",
            in_stock=bool(p.in_stock),
            description=p.description,
        )
        for p in products
    ]


def render_inventory_line(fact: InventoryFact) -> str:
    """One prompt line: name, price per kg, id, stock flag, description."""
    stock = "Sí" if fact.in_stock else "No"
    description = fact.description or "N/A"
    return (
        f"- {fact.name} | Precio: {fact.unit_price:.2f}€/{fact.unit} | ID: {fact.id} "
        f"| En stock: {stock} | Descripción: {description}"
    )


def build_inventory_context(facts: List[InventoryFact]) -> str:
    """Render the whole fact set, one product per line."""
    if not facts:
        return "(No hay productos disponibles en esta sección)"
    return "\n".join(render_inventory_line(f) for f in facts)


def known_product_ids(facts: List[InventoryFact]) -> set:
    return {f.id for f in facts}
