from sqlalchemy import Column, Integer, String, Numeric

from kiosk.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="geral")

    price = Column(Numeric(10, 2), nullable=False)
    price_raw = Column(Numeric(10, 2), nullable=False, default=0)  # cost basis

    # NULL = unlimited, 0 = sold out
    stock = Column(Integer, nullable=True)
    stock_reserved = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)

    @property
    def available(self) -> int | None:
        if self.stock is None:
            return None
        return max(0, self.stock - (self.stock_reserved or 0))
