"""
Per-user cart.

Lines are keyed by (productId, size, color) for every operation. Writes
replace the cart only if cartVersion still holds the value that was read,
so two concurrent edits cannot silently overwrite each other.
"""
import logging
from typing import Callable, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from database import get_db, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from products import ProductResolver
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])

MAX_ATTEMPTS = 3


class CartItemBody(BaseModel):
    productId: str = ""
    quantity: int = 0
    size: str = ""
    color: str = ""


class CartKeyBody(BaseModel):
    productId: str = ""
    size: str = ""
    color: str = ""


def line_key(line: dict):
    return (str(line.get("productId")), line.get("size") or "", line.get("color") or "")


def _load(db, user_id: str) -> dict:
    user = db["user"].find_one({"userId": user_id}, {"cart": 1, "cartVersion": 1})
    if not user:
        raise NotFoundError("User not found")
    return user


def mutate_cart(db, user_id: str, change: Callable[[List[dict]], List[dict]]) -> List[dict]:
    """Apply `change` to the stored cart with an optimistic version check."""
    for _ in range(MAX_ATTEMPTS):
        user = _load(db, user_id)
        version = user.get("cartVersion")
        new_cart = change([dict(line) for line in user.get("cart") or []])
        res = db["user"].update_one(
            {"userId": user_id, "cartVersion": version},
            {"$set": {"cart": new_cart, "updatedAt": utcnow()}, "$inc": {"cartVersion": 1}},
        )
        if res.matched_count:
            return new_cart
        logger.info("Cart of %s changed underneath us, retrying", user_id)
    raise ConflictError("Cart was modified concurrently, please retry")


def get_cart(db, user_id: str) -> List[dict]:
    cart = _load(db, user_id).get("cart") or []
    products = ProductResolver(db).resolve_many(line["productId"] for line in cart)
    result = []
    for line in cart:
        product = products.get(line["productId"])
        if product is None:
            # product removed from the catalog since it was added
            continue
        quantity = line.get("quantity") or 1
        result.append(
            {
                "productId": line["productId"],
                "qty": quantity,
                "quantity": quantity,
                "size": line.get("size") or "",
                "color": line.get("color") or "",
                "product": product,
            }
        )
    return result


def add_or_update(db, user_id: str, product_id: str, quantity: int, size: str = "", color: str = ""):
    if not product_id or not quantity or quantity < 1:
        raise ValidationError("Product ID and quantity required")
    key = (product_id, size or "", color or "")

    def change(cart):
        for line in cart:
            if line_key(line) == key:
                line["quantity"] = quantity
                return cart
        cart.append({"productId": product_id, "quantity": quantity, "size": key[1], "color": key[2]})
        return cart

    return mutate_cart(db, user_id, change)


def update_quantity(db, user_id: str, product_id: str, quantity: int, size: str = "", color: str = ""):
    if not product_id or not quantity or quantity < 1:
        raise ValidationError("Product ID and quantity required")
    key = (product_id, size or "", color or "")

    def change(cart):
        for line in cart:
            if line_key(line) == key:
                line["quantity"] = quantity
                return cart
        raise NotFoundError("Cart item not found")

    return mutate_cart(db, user_id, change)


def remove(db, user_id: str, product_id: str, size: str = "", color: str = ""):
    if not product_id:
        raise ValidationError("Product ID required")
    key = (product_id, size or "", color or "")
    return mutate_cart(db, user_id, lambda cart: [line for line in cart if line_key(line) != key])


def clear(db, user_id: str):
    return mutate_cart(db, user_id, lambda cart: [])


@router.get("")
def read_cart(user=Depends(get_current_user), db=Depends(get_db)):
    return get_cart(db, user["userId"])


@router.post("/add")
def add_to_cart(body: CartItemBody, user=Depends(get_current_user), db=Depends(get_db)):
    add_or_update(db, user["userId"], body.productId, body.quantity, body.size, body.color)
    return {"success": True}


@router.post("/update-quantity")
def update_cart_item_quantity(body: CartItemBody, user=Depends(get_current_user), db=Depends(get_db)):
    update_quantity(db, user["userId"], body.productId, body.quantity, body.size, body.color)
    return {"success": True}


@router.post("/remove")
def remove_from_cart(body: CartKeyBody, user=Depends(get_current_user), db=Depends(get_db)):
    remove(db, user["userId"], body.productId, body.size, body.color)
    return {"success": True}


@router.post("/clear")
def clear_cart(user=Depends(get_current_user), db=Depends(get_db)):
    clear(db, user["userId"])
    return {"success": True}
