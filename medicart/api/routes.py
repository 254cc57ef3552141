# medicart/medicart/api/routes.py
from __future__ import annotations

import logging
from typing import Any, List

import anyio
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from medicart.api.schemas import (
    AddItemRequest,
    AddressRequest,
    BeginCheckoutRequest,
    CartResponse,
    CheckoutResponse,
    InstructionsRequest,
    PaymentMethodRequest,
    PaymentOptionOut,
    UpdateQuantityRequest,
)
from medicart.application.cart_engine import CartEngine, MutationResult
from medicart.application.checkout import (
    PAYMENT_OPTIONS,
    CheckoutOrchestrator,
    SubmissionState,
    begin_checkout,
    fetch_current_stock,
)
from medicart.domain.entities import DeliveryAddress
from medicart.domain.errors import (
    AuthenticationRequired,
    CartValidationFailed,
    CheckoutError,
    EmptyCartAtSubmission,
    SubmissionFailed,
)

log = logging.getLogger("app.routes")
router = APIRouter()


# -------------------------
# Dependencies via app.state
# -------------------------
def get_cart(request: Request) -> CartEngine:
    cart = getattr(request.app.state, "cart", None)
    if cart is None:
        raise RuntimeError("cart not initialized. Check app startup wiring.")
    return cart


def get_checkout(request: Request) -> CheckoutOrchestrator:
    co = getattr(request.app.state, "checkout", None)
    if co is None or co.closed:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    return co


def _cart_view(cart: CartEngine, message: str | None = None) -> dict:
    return {
        "items": [it.to_dict() for it in cart.items()],
        "totals": cart.totals().to_dict(),
        "validation": cart.validate().to_dict(),
        "requires_prescription": cart.requires_prescription(),
        "message": message or None,
    }


def _mutation_view(cart: CartEngine, res: MutationResult) -> dict:
    if not res.ok:
        raise HTTPException(status_code=409, detail=res.to_dict())
    return _cart_view(cart, res.message)


def _checkout_error(e: CheckoutError) -> HTTPException:
    if isinstance(e, AuthenticationRequired):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, CartValidationFailed):
        return HTTPException(status_code=409, detail={"errors": e.errors})
    if isinstance(e, EmptyCartAtSubmission):
        return HTTPException(status_code=409, detail={"errors": [str(e)]})
    if isinstance(e, SubmissionFailed):
        return HTTPException(status_code=502, detail=e.message)
    return HTTPException(status_code=400, detail=str(e))


def _refuse_while_submitting(state: Any) -> None:
    # a closed orchestrator may still have its order in flight
    current = getattr(state, "checkout", None)
    if current is not None and current.session.submission_state is SubmissionState.SUBMITTING:
        raise HTTPException(status_code=409, detail="An order is already being placed")


# -------------------------
# Cart
# -------------------------
@router.get("/cart", response_model=CartResponse)
async def read_cart(cart: CartEngine = Depends(get_cart)) -> Any:
    return _cart_view(cart)


@router.post("/cart/items", response_model=CartResponse)
async def add_item(req: AddItemRequest, request: Request, cart: CartEngine = Depends(get_cart)) -> Any:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise RuntimeError("catalog not initialized. Check app startup wiring.")
    try:
        product = await anyio.to_thread.run_sync(catalog.by_id, req.product_id)
    except Exception as e:
        log.exception("Catalog lookup failed for %s", req.product_id)
        raise HTTPException(status_code=502, detail=str(e))
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {req.product_id}")
    return _mutation_view(cart, cart.add(product, req.quantity))


@router.patch("/cart/items/{product_id}", response_model=CartResponse)
async def update_item(product_id: str, req: UpdateQuantityRequest, cart: CartEngine = Depends(get_cart)) -> Any:
    return _mutation_view(cart, cart.update_quantity(product_id, req.quantity))


@router.delete("/cart/items/{product_id}", response_model=CartResponse)
async def remove_item(product_id: str, cart: CartEngine = Depends(get_cart)) -> Any:
    return _mutation_view(cart, cart.remove(product_id))


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(cart: CartEngine = Depends(get_cart)) -> Any:
    return _mutation_view(cart, cart.clear())


# -------------------------
# Checkout
# -------------------------
@router.get("/payment-methods", response_model=List[PaymentOptionOut])
async def payment_methods() -> Any:
    return [
        {"method": o.method.value, "title": o.title, "description": o.description,
         "enabled": o.enabled, "recommended": o.recommended}
        for o in PAYMENT_OPTIONS
    ]


@router.post("/checkout", response_model=CheckoutResponse)
async def start_checkout(
    request: Request,
    req: BeginCheckoutRequest | None = None,
    cart: CartEngine = Depends(get_cart),
) -> Any:
    state = request.app.state
    _refuse_while_submitting(state)

    default_address = None
    if req is not None and req.default_address is not None:
        a = req.default_address
        default_address = DeliveryAddress(street=a.street or "", city=a.city or "", area=a.area or "")
    catalog = getattr(state, "catalog", None)
    try:
        current_stock = None
        if catalog is not None:
            # catalog lookups are blocking I/O; the cart itself is only read on the loop
            ids = [it.product_id for it in cart.items()]
            current_stock = await anyio.to_thread.run_sync(fetch_current_stock, catalog, ids)
        co = begin_checkout(
            cart=cart,
            orders=state.orders,
            auth_store=state.store,
            default_address=default_address,
            current_stock=current_stock,
        )
    except CheckoutError as e:
        raise _checkout_error(e)
    except Exception as e:
        log.exception("Processing /checkout error")
        raise HTTPException(status_code=502, detail=str(e))

    # another request may have started a submission while we were waiting
    _refuse_while_submitting(state)
    current = getattr(state, "checkout", None)
    if current is not None:
        current.close()
    state.checkout = co
    return co.summary()


@router.get("/checkout", response_model=CheckoutResponse)
async def read_checkout(co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    return co.summary()


@router.put("/checkout/address", response_model=CheckoutResponse)
async def put_address(req: AddressRequest, co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        co.set_address(street=req.street, city=req.city, area=req.area)
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.put("/checkout/payment-method", response_model=CheckoutResponse)
async def put_payment_method(req: PaymentMethodRequest, co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        co.select_payment_method(req.payment_method)
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.put("/checkout/instructions", response_model=CheckoutResponse)
async def put_instructions(req: InstructionsRequest, co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        co.set_special_instructions(req.special_instructions)
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.post("/checkout/prescription", response_model=CheckoutResponse)
async def upload_prescription(
    file: UploadFile = File(...),
    co: CheckoutOrchestrator = Depends(get_checkout),
) -> Any:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="prescription file is empty")
    try:
        co.attach_prescription(
            filename=file.filename or "prescription",
            content=content,
            content_type=file.content_type or "application/octet-stream",
        )
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.post("/checkout/next", response_model=CheckoutResponse)
async def next_step(co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        co.next_step()
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.post("/checkout/previous", response_model=CheckoutResponse)
async def previous_step(co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        co.previous_step()
    except CheckoutError as e:
        raise _checkout_error(e)
    return co.summary()


@router.post("/checkout/submit", response_model=CheckoutResponse)
async def submit_order(co: CheckoutOrchestrator = Depends(get_checkout)) -> Any:
    try:
        await co.submit()
    except CheckoutError as e:
        raise _checkout_error(e)
    except Exception as e:
        log.exception("Processing /checkout/submit error")
        raise HTTPException(status_code=500, detail=str(e))
    return co.summary()


@router.delete("/checkout")
async def leave_checkout(request: Request) -> Any:
    co = getattr(request.app.state, "checkout", None)
    if co is not None:
        co.close()
        # keep an in-flight submission visible to POST /checkout
        if co.session.submission_state is not SubmissionState.SUBMITTING:
            request.app.state.checkout = None
    return {"closed": True}
