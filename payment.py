"""
Checkout: Razorpay order creation, signature verification, COD orders and
the first-order promo.

Online orders are only written after the gateway signature checks out.
Confirmation mail goes through the notifier and never affects the response.
"""
import logging
import time
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import emails
from config import get_settings
from database import create_document, get_db, serialize_doc
from errors import PaymentVerificationError, ValidationError
from gateway import get_gateway
from guards import rate_limit
from mailer import get_notifier
from schemas import Order as OrderSchema
from schemas import OrderItem, ShippingAddress
from security import get_current_user, require_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["payment"])
throttled = [Depends(rate_limit("payment"))]

EXCLUDED_FROM_FIRST_ORDER = ["cancelled", "failed"]


class ProductSnapshot(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None


class CheckoutItem(BaseModel):
    productId: str
    name: Optional[str] = None
    price: Optional[float] = None
    qty: Optional[int] = Field(None, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    product: Optional[ProductSnapshot] = None


class CreateOrderBody(BaseModel):
    amount: float = Field(..., gt=0)
    currency: Literal["INR"] = "INR"
    receipt: str = Field(..., min_length=1)


class OrderDetails(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    shippingAddress: ShippingAddress
    totalAmount: float = Field(..., ge=1)


class VerifyPaymentBody(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)
    orderDetails: OrderDetails


class CODOrderBody(OrderDetails):
    pass


class PromoBody(BaseModel):
    promoCode: Optional[str] = None
    subtotal: float = Field(0, ge=0)


def snapshot_item(item: CheckoutItem) -> OrderItem:
    product = item.product or ProductSnapshot()
    name = item.name or product.name or "Unknown Product"
    price = item.price if item.price is not None else (product.price or 0)
    return OrderItem(
        productId=item.productId,
        name=name,
        price=price,
        qty=item.qty or 1,
        size=item.size or "N/A",
        color=item.color,
    )


def save_order(db, order: OrderSchema) -> dict:
    create_document(db, "order", order)
    return order.model_dump()


def is_first_order(db, email: str) -> bool:
    filt = {"shippingAddress.email": email, "status": {"$nin": EXCLUDED_FROM_FIRST_ORDER}}
    return db["order"].count_documents(filt) == 0


def validate_promo(db, settings, email: str, promo_code: Optional[str], subtotal: float) -> dict:
    if not promo_code or not isinstance(promo_code, str) or not promo_code.strip():
        return {"valid": False, "message": "Please enter a valid promo code"}
    code = promo_code.strip().upper()
    if code != settings.promo_code:
        return {"valid": False, "message": "Invalid promo code"}
    if not is_first_order(db, email):
        return {"valid": False, "message": "This promo code is only valid for first-time customers"}
    discount = round(subtotal * settings.promo_percent / 100)
    return {
        "valid": True,
        "promoCode": settings.promo_code,
        "discountAmount": discount,
        "discountedTotal": subtotal - discount,
        "discountPercentage": settings.promo_percent,
        "message": f"{settings.promo_percent}% welcome discount applied successfully!",
    }


# ----------------------- Gateway -----------------------
@router.post("/create-order", dependencies=throttled)
def create_order(body: CreateOrderBody, gateway=Depends(get_gateway)):
    return gateway.create_order(body.amount, body.currency, body.receipt)


@router.post("/verify-payment", dependencies=throttled)
def verify_payment(
    body: VerifyPaymentBody,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    gateway=Depends(get_gateway),
    notifier=Depends(get_notifier),
    settings=Depends(get_settings),
):
    if not gateway.verify_signature(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature):
        logger.warning("Signature mismatch for gateway order %s", body.razorpay_order_id)
        raise PaymentVerificationError("Invalid payment signature")

    details = body.orderDetails
    order = save_order(
        db,
        OrderSchema(
            razorpayOrderId=body.razorpay_order_id,
            paymentId=body.razorpay_payment_id,
            status="completed",
            items=[snapshot_item(i) for i in details.items],
            shippingAddress=details.shippingAddress,
            totalAmount=details.totalAmount,
            paymentMethod="online",
        ),
    )
    logger.info("Order %s paid with %s", body.razorpay_order_id, body.razorpay_payment_id)
    notifier.dispatch(
        background_tasks,
        [details.shippingAddress.email, *settings.admin_notify_emails],
        f"Order Confirmation: {body.razorpay_order_id}",
        emails.order_confirmation(order),
    )
    return {"orderId": body.razorpay_order_id, "paymentId": body.razorpay_payment_id}


@router.post("/create-cod-order", dependencies=throttled)
def create_cod_order(
    body: CODOrderBody,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier=Depends(get_notifier),
    settings=Depends(get_settings),
):
    order_id = f"cod_{int(time.time() * 1000)}"
    order = save_order(
        db,
        OrderSchema(
            razorpayOrderId=order_id,
            status="pending",
            items=[snapshot_item(i) for i in body.items],
            shippingAddress=body.shippingAddress,
            totalAmount=body.totalAmount,
            paymentMethod="COD",
        ),
    )
    logger.info("COD order %s placed", order_id)
    notifier.dispatch(
        background_tasks,
        [body.shippingAddress.email, *settings.admin_notify_emails],
        f"A New COD Order {order_id}",
        emails.cod_order(order),
    )
    return {"orderId": order_id}


# ----------------------- Order history -----------------------
@router.get("/orders")
def orders_by_email(email: Optional[str] = None, db=Depends(get_db)):
    if not email:
        raise ValidationError("email query param is required")
    orders = db["order"].find({"shippingAddress.email": email}).sort("createdAt", -1)
    return [serialize_doc(o) for o in orders]


@router.get("/all-orders", dependencies=[Depends(require_admin_key)])
def all_orders(db=Depends(get_db)):
    return [serialize_doc(o) for o in db["order"].find({}).sort("createdAt", -1)]


# ----------------------- Promo -----------------------
@router.get("/first-order-status")
def first_order_status(user=Depends(get_current_user), db=Depends(get_db)):
    first = is_first_order(db, user["email"])
    return {
        "isFirstOrder": first,
        "message": "This is your first order - eligible for welcome discount!" if first else "Welcome back!",
    }


@router.post("/validate-promo")
def validate_promo_code(
    body: PromoBody,
    user=Depends(get_current_user),
    db=Depends(get_db),
    settings=Depends(get_settings),
):
    result = validate_promo(db, settings, user["email"], body.promoCode, body.subtotal)
    if not result["valid"]:
        return JSONResponse(status_code=400, content=result)
    return result
