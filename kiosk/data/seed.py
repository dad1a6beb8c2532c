# kiosk/data/seed.py
from decimal import Decimal

from kiosk.data.database import Base, SessionLocal, engine
from kiosk.data.models import ProductModel
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    # name, category, price, cost, stock (None = unlimited)
    ("Coxinha", "salgados", "7.50", "3.10", 40),
    ("Pao de queijo", "salgados", "5.00", "1.80", 60),
    ("Cafe expresso", "bebidas", "6.00", "1.20", None),
    ("Suco de laranja", "bebidas", "9.00", "3.50", 25),
    ("Brigadeiro", "doces", "4.00", "1.10", 30),
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        for name, category, price, cost, stock in DEMO_PRODUCTS:
            db.add(
                ProductModel(
                    name=name,
                    category=category,
                    price=Decimal(price),
                    price_raw=Decimal(cost),
                    stock=stock,
                    stock_reserved=0,
                )
            )
        db.commit()
        logger.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
