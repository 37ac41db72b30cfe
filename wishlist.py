from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import get_db
from errors import NotFoundError, ValidationError
from products import ProductResolver
from security import get_current_user

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


class ToggleBody(BaseModel):
    productId: str = ""


def wishlist_ids(db, user_id: str):
    user = db["user"].find_one({"userId": user_id}, {"wishlist": 1})
    if not user:
        raise NotFoundError("User not found")
    return user.get("wishlist") or []


def toggle(db, user_id: str, product_id: str) -> bool:
    """Remove the id if present, add it otherwise. Returns the new membership."""
    if not product_id:
        raise ValidationError("Product ID is required")
    pulled = db["user"].update_one({"userId": user_id, "wishlist": product_id}, {"$pull": {"wishlist": product_id}})
    if pulled.matched_count:
        return False
    added = db["user"].update_one({"userId": user_id}, {"$addToSet": {"wishlist": product_id}})
    if not added.matched_count:
        raise NotFoundError("User not found")
    return True


@router.get("")
def wishlist_products(user=Depends(get_current_user), db=Depends(get_db)):
    ids = wishlist_ids(db, user["userId"])
    products = ProductResolver(db).resolve_many(ids)
    return [{"product": products[i]} for i in ids if i in products]


@router.post("/toggle")
def toggle_wishlist(body: ToggleBody, user=Depends(get_current_user), db=Depends(get_db)):
    return {"wishlisted": toggle(db, user["userId"], body.productId)}


@router.get("/{product_id}")
def wishlist_status(product_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    return {"wishlisted": product_id in wishlist_ids(db, user["userId"])}
