# =========================
# FILE: medicart/medicart/application/checkout.py
# =========================
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

import anyio

from medicart.application.cart_engine import CartEngine
from medicart.core.config import TOKEN_STORAGE_KEY
from medicart.domain.entities import (
    Attachment,
    DeliveryAddress,
    OrderLine,
    OrderReceipt,
    OrderRequest,
)
from medicart.domain.errors import (
    AuthenticationRequired,
    CartValidationFailed,
    EmptyCartAtSubmission,
    IncompleteAddress,
    InvalidTransition,
    PaymentMethodUnavailable,
    SubmissionFailed,
    errmsg,
)
from medicart.domain.repositories import CatalogReadRepo, KeyValueStore, OrderGateway

log = logging.getLogger("app.checkout")


class CheckoutStep(IntEnum):
    ADDRESS = 1
    PAYMENT = 2
    REVIEW = 3
    COMPLETE = 4


class SubmissionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE = "online"


@dataclass(frozen=True)
class PaymentOption:
    method: PaymentMethod
    title: str
    description: str
    enabled: bool
    recommended: bool = False


# Online payment is listed but not selectable until a gateway exists.
PAYMENT_OPTIONS: List[PaymentOption] = [
    PaymentOption(
        PaymentMethod.CASH_ON_DELIVERY,
        "Cash on Delivery",
        "Pay when your order is delivered to your doorstep.",
        enabled=True,
        recommended=True,
    ),
    PaymentOption(
        PaymentMethod.ONLINE,
        "Online Payment",
        "Credit/Debit cards, JazzCash, EasyPaisa (Coming Soon)",
        enabled=False,
    ),
]
_ENABLED_METHODS = {o.method for o in PAYMENT_OPTIONS if o.enabled}

# step -> steps reachable with next_step()/previous_step()
_FORWARD = {CheckoutStep.ADDRESS: CheckoutStep.PAYMENT, CheckoutStep.PAYMENT: CheckoutStep.REVIEW}
_BACKWARD = {CheckoutStep.PAYMENT: CheckoutStep.ADDRESS, CheckoutStep.REVIEW: CheckoutStep.PAYMENT}


@dataclass
class CheckoutSession:
    current_step: CheckoutStep = CheckoutStep.ADDRESS
    delivery_address: DeliveryAddress = field(default_factory=DeliveryAddress)
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    special_instructions: str = ""
    prescription: Optional[Attachment] = None
    submission_state: SubmissionState = SubmissionState.IDLE
    last_error: Optional[str] = None
    receipt: Optional[OrderReceipt] = None


class CheckoutOrchestrator:
    """
    Linear checkout: address -> payment -> review -> complete.

    Steps move one at a time in either direction. The only way from review
    to complete is a successful submit(); complete is terminal. The cart is
    read at submit time, never copied when checkout starts.
    """

    def __init__(
        self,
        cart: CartEngine,
        orders: OrderGateway,
        default_address: Optional[DeliveryAddress] = None,
    ) -> None:
        self.cart = cart
        self.orders = orders
        self.session = CheckoutSession(
            delivery_address=DeliveryAddress(**default_address.to_dict()) if default_address else DeliveryAddress()
        )
        self.closed = False

    @property
    def step(self) -> CheckoutStep:
        return self.session.current_step

    @property
    def prescription_required(self) -> bool:
        return self.cart.requires_prescription()

    # ----------------------------
    # Guards
    # ----------------------------
    def _ensure_open(self) -> None:
        if self.closed:
            raise InvalidTransition("Checkout session is closed")

    def _ensure_step(self, *allowed: CheckoutStep) -> None:
        self._ensure_open()
        if self.session.current_step not in allowed:
            names = ", ".join(s.name.lower() for s in allowed)
            raise InvalidTransition(f"Not allowed on step {self.session.current_step.name.lower()} (expected {names})")

    def _ensure_not_submitting(self) -> None:
        if self.session.submission_state is SubmissionState.SUBMITTING:
            raise InvalidTransition("Order submission in progress")

    # ----------------------------
    # Step-scoped form data
    # ----------------------------
    def set_address(self, street: Optional[str] = None, city: Optional[str] = None, area: Optional[str] = None) -> DeliveryAddress:
        self._ensure_step(CheckoutStep.ADDRESS)
        addr = self.session.delivery_address
        if street is not None:
            addr.street = street
        if city is not None:
            addr.city = city
        if area is not None:
            addr.area = area
        return addr

    def select_payment_method(self, method: PaymentMethod | str) -> PaymentMethod:
        self._ensure_step(CheckoutStep.PAYMENT)
        try:
            m = PaymentMethod(method)
        except ValueError:
            raise PaymentMethodUnavailable(f"Unknown payment method: {method}") from None
        if m not in _ENABLED_METHODS:
            raise PaymentMethodUnavailable(errmsg.PAYMENT_UNAVAILABLE.format(method=m.value))
        self.session.payment_method = m
        return m

    def set_special_instructions(self, text: str) -> None:
        self._ensure_step(CheckoutStep.REVIEW)
        self._ensure_not_submitting()
        self.session.special_instructions = text or ""

    def attach_prescription(self, filename: str, content: bytes, content_type: str = "application/octet-stream") -> Attachment:
        self._ensure_step(CheckoutStep.REVIEW)
        self._ensure_not_submitting()
        att = Attachment(filename=filename, content=content, content_type=content_type)
        self.session.prescription = att
        return att

    def detach_prescription(self) -> None:
        self._ensure_step(CheckoutStep.REVIEW)
        self._ensure_not_submitting()
        self.session.prescription = None

    # ----------------------------
    # Transitions
    # ----------------------------
    def next_step(self) -> CheckoutStep:
        self._ensure_open()
        cur = self.session.current_step
        if cur not in _FORWARD:
            raise InvalidTransition(f"No next step from {cur.name.lower()}")
        if cur is CheckoutStep.ADDRESS and not self.session.delivery_address.is_complete():
            raise IncompleteAddress()
        self.session.current_step = _FORWARD[cur]
        return self.session.current_step

    def previous_step(self) -> CheckoutStep:
        self._ensure_open()
        self._ensure_not_submitting()
        cur = self.session.current_step
        if cur not in _BACKWARD:
            raise InvalidTransition(f"No previous step from {cur.name.lower()}")
        self.session.current_step = _BACKWARD[cur]
        return self.session.current_step

    def close(self) -> None:
        """Leave checkout. The orchestrator cannot be reused afterwards."""
        if not self.closed:
            log.info("Checkout closed on step %s", self.session.current_step.name.lower())
        self.closed = True

    # ----------------------------
    # Submission
    # ----------------------------
    def build_order_request(self) -> OrderRequest:
        s = self.session
        return OrderRequest(
            items=[
                OrderLine(product_id=it.product_id, name=it.name, price=it.unit_price, quantity=it.quantity)
                for it in self.cart.items()
            ],
            delivery_address=DeliveryAddress(**s.delivery_address.to_dict()),
            payment_method=s.payment_method.value,
            special_instructions=s.special_instructions,
            prescription=s.prescription,
        )

    async def submit(self) -> Optional[OrderReceipt]:
        """
        Place the order built from the current cart.

        Returns None (and does nothing) while a previous submit is in flight.
        On failure the cart and the step are left as they were, so calling
        submit() again is safe.
        """
        s = self.session
        if s.submission_state is SubmissionState.SUBMITTING:
            log.info("submit ignored: already in flight")
            return None
        self._ensure_step(CheckoutStep.REVIEW)

        if self.cart.is_empty:
            s.last_error = str(EmptyCartAtSubmission())
            raise EmptyCartAtSubmission()
        check = self.cart.validate()
        if not check.valid:
            s.last_error = "; ".join(check.errors)
            raise CartValidationFailed(check.errors)

        request = self.build_order_request()
        s.submission_state = SubmissionState.SUBMITTING
        s.last_error = None
        log.info("Submitting order with %d lines", len(request.items))
        try:
            receipt = await anyio.to_thread.run_sync(self.orders.create_order, request)
        except SubmissionFailed as e:
            s.submission_state = SubmissionState.FAILED
            s.last_error = e.message
            raise
        except Exception as e:
            log.exception("Unexpected error while placing order")
            s.submission_state = SubmissionState.FAILED
            s.last_error = errmsg.ORDER_FAILED
            raise SubmissionFailed(errmsg.ORDER_FAILED) from e

        # the order exists server-side now, even if the user already left
        self.cart.clear()
        s.submission_state = SubmissionState.SUCCEEDED
        s.receipt = receipt
        if self.closed:
            log.info("Order %s placed after checkout was closed", receipt.order_id)
            return receipt
        s.current_step = CheckoutStep.COMPLETE
        return receipt

    def summary(self) -> Dict[str, Any]:
        s = self.session
        return {
            "step": int(s.current_step),
            "step_name": s.current_step.name.lower(),
            "delivery_address": s.delivery_address.to_dict(),
            "payment_method": s.payment_method.value,
            "special_instructions": s.special_instructions,
            "prescription": s.prescription.filename if s.prescription else None,
            "prescription_required": self.prescription_required,
            "submission_state": s.submission_state.value,
            "last_error": s.last_error,
            "order_id": s.receipt.order_id if s.receipt else None,
            "items": [it.to_dict() for it in self.cart.items()],
            "totals": self.cart.totals().to_dict(),
            "closed": self.closed,
        }


def fetch_current_stock(catalog: CatalogReadRepo, product_ids: List[str]) -> Dict[str, Optional[int]]:
    """Current stock per product; None for products the catalog no longer has."""
    stock: Dict[str, Optional[int]] = {}
    for pid in product_ids:
        product = catalog.by_id(pid)
        stock[pid] = product.stock if product else None
    return stock


def begin_checkout(
    cart: CartEngine,
    orders: OrderGateway,
    auth_store: KeyValueStore,
    catalog: Optional[CatalogReadRepo] = None,
    default_address: Optional[DeliveryAddress] = None,
    current_stock: Optional[Dict[str, Optional[int]]] = None,
) -> CheckoutOrchestrator:
    """
    Entry gate. Unauthenticated users and carts that fail validation never
    get an orchestrator. With a catalog (or stock already fetched from one),
    stock is re-checked against the current figures instead of the
    snapshots taken at add time.
    """
    if not auth_store.get(TOKEN_STORAGE_KEY):
        raise AuthenticationRequired()

    if current_stock is None and catalog is not None:
        current_stock = fetch_current_stock(catalog, [it.product_id for it in cart.items()])

    check = cart.validate(current_stock=current_stock)
    if not check.valid:
        log.info("Checkout refused: %s", check.errors)
        raise CartValidationFailed(check.errors)
    return CheckoutOrchestrator(cart=cart, orders=orders, default_address=default_address)
