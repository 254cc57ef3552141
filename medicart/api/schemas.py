# =========================
# FILE: medicart/medicart/api/schemas.py
# =========================
from __future__ import annotations

from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field


class LineItemOut(BaseModel):
    product: str
    name: str
    price: float
    image: str
    unit: str
    quantity: int
    stock: int
    requiresPrescription: bool = False


class TotalsOut(BaseModel):
    subtotal: float
    delivery_fee: float
    total: float
    item_count: int


class ValidationOut(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class CartResponse(BaseModel):
    items: List[LineItemOut]
    totals: TotalsOut
    validation: ValidationOut
    requires_prescription: bool
    message: Optional[str] = None


class AddItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)


class UpdateQuantityRequest(BaseModel):
    # 0 or less removes the item
    quantity: int


class AddressRequest(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None


class BeginCheckoutRequest(BaseModel):
    default_address: Optional[AddressRequest] = None


class PaymentMethodRequest(BaseModel):
    payment_method: str = Field(..., example="cash_on_delivery")


class InstructionsRequest(BaseModel):
    special_instructions: str = ""


class PaymentOptionOut(BaseModel):
    method: str
    title: str
    description: str
    enabled: bool
    recommended: bool


class CheckoutResponse(BaseModel):
    step: int
    step_name: str
    delivery_address: Dict[str, str]
    payment_method: str
    special_instructions: str
    prescription: Optional[str] = None
    prescription_required: bool
    submission_state: str
    last_error: Optional[str] = None
    order_id: Optional[str] = None
    items: List[Dict[str, Any]]
    totals: TotalsOut
    closed: bool
