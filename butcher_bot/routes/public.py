"""
Public Routes for Butcher Bot
=============================

Endpoints that need no authentication.

Endpoints:
----------
- GET /products: Catalog listing, optionally filtered by category. Uses the
  same query that feeds the chat's inventory context, so what customers
  browse is what the assistant knows about.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..inventory import query_products
from ..schemas.products import ProductOut

# Router definition
public_router = APIRouter(tags=["Public"])


@public_router.get("/products", response_model=List[ProductOut])
def list_products(
    category: Optional[str] = Query(None, description="Catalog category, e.g. 'carnes'"),
    db: Session = Depends(get_db),
) -> List[ProductOut]:
    return [ProductOut.model_validate(p) for p in query_products(db, category)]
