"""
Seed data for the demo butcher shop catalog.

Usage:
    python -m butcher_bot.init_db
"""

from decimal import Decimal

from sqlalchemy.orm import Session

from butcher_bot import db as db_module
from butcher_bot.models import Product


CATALOG = [
    # Carnes
    ("Solomillo de ternera", "carnes", "48.90", "Pieza tierna y magra, ideal a la plancha"),
    ("Entrecot de vaca madurada", "carnes", "32.50", "Maduración de 30 días"),
    ("Chuletón de buey", "carnes", "39.90", "Con hueso, para parrilla"),
    ("Carne picada mixta", "carnes", "9.95", "Ternera y cerdo, picada al momento"),
    ("Pechuga de pollo", "carnes", "8.45", "Pollo de corral, fileteada bajo pedido"),
    ("Costillas de cerdo", "carnes", "7.90", "Costilla ibérica para horno o barbacoa"),
    ("Secreto ibérico", "carnes", "22.80", None),
    ("Paletilla de cordero", "carnes", "19.50", "Cordero lechal"),
    # Charcutería
    ("Jamón ibérico de bellota", "charcutería", "89.00", "Loncheado a cuchillo"),
    ("Chorizo de León", "charcutería", "14.90", "Curado, ligeramente picante"),
    ("Salchichón ibérico", "charcutería", "18.60", None),
    ("Lomo embuchado", "charcutería", "34.00", "Lomo de cebo ibérico"),
    # Preparados
    ("Hamburguesas de ternera", "preparados", "12.90", "Cuatro unidades por kilo aprox."),
    ("Pinchos morunos", "preparados", "11.50", "Adobados, listos para la plancha"),
    ("Albóndigas caseras", "preparados", "10.80", "Con ajo y perejil"),
    ("Pollo marinado al limón", "preparados", "9.90", None),
]


def seed_products(db: Session = None) -> int:
    """Insert the demo catalog unless products already exist. Returns rows added."""
    owns_session = db is None
    if owns_session:
        db = db_module.SessionLocal()
    try:
        existing = db.query(Product).count()
        if existing > 0:
            print(f"Catalog already has {existing} products. Not seeding again.")
            return 0

        products = [
            Product(
                name=name,
                category=category,
                price=Decimal(price),
                unit="kg",
                description=description,
                in_stock=True,
            )
            for name, category, price, description in CATALOG
        ]
        db.add_all(products)
        db.commit()
        print(f"Seeded {len(products)} products")
        return len(products)
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    seed_products()
