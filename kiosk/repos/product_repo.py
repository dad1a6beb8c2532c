# kiosk/repos/product_repo.py
from sqlalchemy import update, case
from sqlalchemy.orm import Session

from kiosk.data.models.product import ProductModel
from kiosk.domain.errors import InsufficientStock


def _floored_sub(column, quantity: int):
    # column - quantity, never below zero, evaluated by the database
    return case((column > quantity, column - quantity), else_=0)


class ProductRepo:
    """
    Stock counters are only ever changed with single UPDATE statements so two
    checkouts racing for the last unit cannot both win.
    Nothing here commits; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id, populate_existing=True)

    def reserve(self, product: ProductModel, quantity: int) -> None:
        if product.stock is None:
            return

        res = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product.id,
                ProductModel.stock.is_not(None),
                ProductModel.stock - ProductModel.stock_reserved >= quantity,
            )
            .values(stock_reserved=ProductModel.stock_reserved + quantity)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.refresh(product)
            raise InsufficientStock(product.id, quantity, product.available)

    def release(self, product_id: int, quantity: int) -> int:
        res = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock.is_not(None))
            .values(stock_reserved=_floored_sub(ProductModel.stock_reserved, quantity))
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def commit_sale(self, product_id: int, quantity: int) -> int:
        # reservation turns into a permanent deduction
        res = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock.is_not(None))
            .values(
                stock=_floored_sub(ProductModel.stock, quantity),
                stock_reserved=_floored_sub(ProductModel.stock_reserved, quantity),
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
