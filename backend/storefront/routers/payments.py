"""
storefront/routers/payments.py
Landing endpoints for the processor's redirects and the processor webhook.

- GET  /payments/success?session_id=..&order_id=..  -> reconcile (order paid, cart cleared)
- GET  /payments/cancel?cancelled=true&order_id=..   -> nothing changes; order stays pending
- POST /payments/webhook                             -> signed processor event
- GET  /payments/status/{order_id}                   -> read-only status poll
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from storefront.core.deps import get_order_store, get_reconciler
from storefront.integrations.payment import parse_cancel_callback, parse_success_callback
from storefront.schemas.payment import ReconcileOut
from storefront.services.checkout import get_order
from storefront.services.reconciliation import PaymentReconciler

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/success", response_model=ReconcileOut)
def payment_success(request: Request, reconciler: PaymentReconciler = Depends(get_reconciler)):
    session_id, order_id = parse_success_callback(dict(request.query_params))
    return reconciler.reconcile(session_id, order_id)


@router.get("/cancel")
def payment_cancelled(request: Request, order_id: Optional[str] = None):
    return {"cancelled": parse_cancel_callback(dict(request.query_params)), "order_id": order_id}


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_payment_signature: Optional[str] = Header(None),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    body = await request.body()
    result = reconciler.handle_webhook(body, x_payment_signature)
    if result is None:
        return {"ok": True, "ignored": True}
    return {"ok": True, "order_id": result.order.id, "status": result.order.status}


@router.get("/status/{order_id}")
def payment_status(order_id: str, order_store=Depends(get_order_store)):
    order = get_order(order_store, order_id)
    return {"order_id": order.id, "status": order.status}
