# import every model so SQLAlchemy registers it in Base.metadata

from kiosk.data.models.user import UserModel
from kiosk.data.models.product import ProductModel
from kiosk.data.models.order import OrderModel
from kiosk.data.models.reconciliation import ReconciliationModel

__all__ = ["UserModel", "ProductModel", "OrderModel", "ReconciliationModel"]
