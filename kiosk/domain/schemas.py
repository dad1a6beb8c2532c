# kiosk/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Any, Dict, List, Literal, Optional
from decimal import Decimal
from datetime import datetime

from kiosk.domain.statuses import normalize_payment_id


class OrderItemIn(BaseModel):
    """Line item sent by the storefront; name and price come from the product row."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class OrderItemOut(BaseModel):
    product_id: int
    name: str
    price: Decimal
    price_raw: Decimal = Decimal("0")
    quantity: int


class OrderCreate(BaseModel):
    user_id: Optional[int] = Field(None, gt=0, description="Omitted for guest checkout")
    user_name: Optional[str] = Field(None, max_length=100)
    items: List[OrderItemIn] = Field(..., min_length=1)
    payment_type: Literal["presencial", "online"]
    payment_method: Optional[Literal["credit", "debit", "pix"]] = None
    installments: int = Field(1, ge=1, le=12)
    fee: Optional[Decimal] = Field(None, ge=0, description="Surcharge percent for credit")
    observation: Optional[str] = Field(None, max_length=500)


class OrderOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    items: List[OrderItemOut]
    total: Decimal
    status: str
    payment_status: str
    payment_id: Optional[str] = None
    payment_type: str
    payment_method: Optional[str] = None
    installments: int
    fee: Decimal
    observation: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FinalizeIn(BaseModel):
    payment_id: Optional[str] = None
    method: Literal["pix", "card"] = "pix"

    @field_validator("payment_id", mode="before")
    @classmethod
    def _plain_payment_id(cls, v):
        return normalize_payment_id(v)


class UserCreate(BaseModel):
    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)


class UserRead(BaseModel):
    id: int
    name: str
    history: List[Dict[str, Any]] = []

    model_config = ConfigDict(from_attributes=True)


# ---- payments ----

class PixPaymentIn(BaseModel):
    order_id: int = Field(..., gt=0)
    description: Optional[str] = None
    email: Optional[str] = None
    payer_name: Optional[str] = None


class PixPaymentOut(BaseModel):
    payment_id: str
    order_id: int
    amount: Decimal
    status: str
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    ticket_url: Optional[str] = None
    type: str = "pix"


class CardPaymentIn(BaseModel):
    order_id: int = Field(..., gt=0)
    description: Optional[str] = None
    method: Optional[Literal["credit", "debit"]] = None
    installments: Optional[int] = Field(None, ge=1, le=12)


class CardPaymentOut(BaseModel):
    payment_id: str
    order_id: int
    amount: Decimal
    status: str = "open"
    type: str = "point"


class OnlineCardPaymentIn(BaseModel):
    order_id: int = Field(..., gt=0)
    token: str = Field(..., min_length=1)
    payment_method_id: str = Field(..., min_length=1)
    installments: int = Field(1, ge=1, le=12)
    issuer_id: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None


class OnlineCardPaymentOut(BaseModel):
    payment_id: str
    order_id: int
    amount: Decimal
    status: str
    status_detail: Optional[str] = None
    approved: bool


class PreferenceIn(BaseModel):
    order_id: int = Field(..., gt=0)
    email: Optional[str] = None
    payer_name: Optional[str] = None


class PreferenceOut(BaseModel):
    preference_id: str
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None


class PaymentStatusOut(BaseModel):
    payment_id: str
    status: str
    amount: Optional[Decimal] = None
    order_ref: Optional[str] = None
    cached: bool = False


class CancelOut(BaseModel):
    success: bool
    message: str


class TerminalStatusOut(BaseModel):
    connected: bool
    device_id: Optional[str] = None
    mode: Optional[str] = None
    model: Optional[str] = None
    status: Optional[str] = None


class ClearQueueOut(BaseModel):
    success: bool = True
    cleared: int


class WebhookIn(BaseModel):
    action: Optional[str] = None
    type: Optional[str] = None
    data: Dict[str, Any] = {}

    model_config = ConfigDict(extra="allow")
