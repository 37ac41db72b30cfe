"""
Catalog reads and admin-style product writes.

Cart and wishlist store external product ids ("id"), not database ids;
ProductResolver is the single place those soft references get resolved.
"""
import logging
import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from schemas import Product as ProductSchema
from schemas import ProductFields
from schemas import Review, check_colors, split_sizes
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

GALLERY_FIELDS = {"id": 1, "name": 1, "price": 1, "marketPrice": 1, "category": 1, "image": 1, "sizes": 1, "colors": 1}
NEW_ARRIVAL_FIELDS = {"id": 1, "name": 1, "image": 1, "isNewArrival": 1}
LISTING_FIELDS = {
    "id": 1, "name": 1, "price": 1, "marketPrice": 1, "category": 1, "image": 1,
    "images": 1, "sizes": 1, "colors": 1, "inStock": 1, "description": 1,
}
# description is the only optional field an update may clear
NOT_NULLABLE = (
    "name", "price", "marketPrice", "category", "sizes", "colors", "inStock", "isNewArrival", "image", "images",
)


class ProductResolver:
    def __init__(self, db):
        self.db = db

    def resolve_many(self, ids: Iterable[str], projection: Optional[dict] = None) -> Dict[str, dict]:
        """Map each external id to its product. Ids with no product are left out."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}
        docs = self.db["product"].find({"id": {"$in": ids}}, projection)
        return {d["id"]: serialize_doc(d) for d in docs}


class ProductUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    marketPrice: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    inStock: Optional[bool] = None
    isNewArrival: Optional[bool] = None
    image: Optional[str] = Field(None, min_length=1)
    images: Optional[List[str]] = None

    @field_validator(*NOT_NULLABLE, mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator("sizes", mode="before")
    @classmethod
    def sizes_from_csv(cls, value):
        return split_sizes(value) if value is not None else None

    @field_validator("colors")
    @classmethod
    def colors_not_blank(cls, value):
        return check_colors(value) if value is not None else None

    @model_validator(mode="after")
    def market_price_not_below_price(self):
        if self.price is not None and self.marketPrice is not None and self.marketPrice < self.price:
            raise ValueError("marketPrice must be greater than or equal to price")
        return self


class ReviewBody(BaseModel):
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    userId: Optional[str] = None
    userName: Optional[str] = None
    userAvatar: Optional[str] = None


# ----------------------- Reads -----------------------
@router.get("")
def list_products(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    total = db["product"].count_documents({})
    cursor = (
        db["product"].find({}, {"images": 0})
        .sort("createdAt", -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "products": [serialize_doc(p) for p in cursor],
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
    }


@router.get("/gallery-products")
def gallery_products(per_category: int = Query(10, ge=1), db=Depends(get_db)):
    groups = OrderedDict()
    for doc in db["product"].find({}, {**GALLERY_FIELDS, "createdAt": 1}).sort("createdAt", -1):
        bucket = groups.setdefault(doc.get("category"), [])
        if len(bucket) < per_category:
            doc.pop("_id", None)
            doc.pop("createdAt", None)
            bucket.append(doc)
    products = []
    for category in sorted(groups, key=lambda c: c or "", reverse=True):
        products.extend(groups[category])
    return {"products": products}


@router.get("/new-arrivals")
def new_arrivals(limit: int = Query(12, ge=1), db=Depends(get_db)):
    cursor = db["product"].find({"isNewArrival": True}, NEW_ARRIVAL_FIELDS).sort("createdAt", -1).limit(limit)
    return {"products": [serialize_doc(p) for p in cursor]}


@router.get("/new-arrivalsPage")
def new_arrivals_page(limit: int = Query(20, ge=1), db=Depends(get_db)):
    filt = {
        "isNewArrival": True,
        "image": {"$exists": True, "$ne": ""},
        "name": {"$exists": True, "$ne": ""},
    }
    cursor = db["product"].find(filt, LISTING_FIELDS).sort("createdAt", -1).limit(limit)
    return {"products": [serialize_doc(p) for p in cursor]}


@router.get("/categories")
def categories(db=Depends(get_db)):
    values = db["product"].distinct("category", {"category": {"$exists": True, "$ne": ""}})
    return {"categories": [c for c in values if c]}


@router.get("/productsDetail")
def product_detail_by_external_id(id: Optional[str] = None, db=Depends(get_db)):
    if not id:
        raise ValidationError("Product ID is required")
    products = [serialize_doc(p) for p in db["product"].find({"id": id})]
    if not products:
        raise NotFoundError("Product not found")
    return {"products": products}


@router.get("/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    item = db["product"].find_one({"_id": to_object_id(product_id)})
    if not item:
        raise NotFoundError("Product not found")
    return serialize_doc(item)


# ----------------------- Writes -----------------------
@router.post("", status_code=201)
def create_product(body: ProductFields, db=Depends(get_db)):
    if db["product"].find_one({"id": body.id}):
        raise ConflictError("Product ID already exists")
    try:
        pid = create_document(db, "product", ProductSchema(**body.model_dump()))
    except DuplicateKeyError:
        raise ConflictError("Product ID already exists")
    logger.info("Product %s created", body.id)
    return {"message": "Product created", "product": serialize_doc(db["product"].find_one({"_id": to_object_id(pid)}))}


@router.put("/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, db=Depends(get_db)):
    oid = to_object_id(product_id)
    update = body.model_dump(exclude_unset=True)
    if "price" in update or "marketPrice" in update:
        current = db["product"].find_one({"_id": oid}, {"price": 1, "marketPrice": 1}) or {}
        price = update.get("price", current.get("price"))
        market = update.get("marketPrice", current.get("marketPrice"))
        if price is not None and market is not None and market < price:
            raise ValidationError("marketPrice must be greater than or equal to price")
    update["updatedAt"] = utcnow()
    product = db["product"].find_one_and_update(
        {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not product:
        raise NotFoundError("Product not found")
    return {"message": "Product updated successfully", "product": serialize_doc(product)}


@router.delete("/{product_id}")
def delete_product(product_id: str, db=Depends(get_db)):
    res = db["product"].delete_one({"_id": to_object_id(product_id)})
    if res.deleted_count == 0:
        raise NotFoundError("Product not found")
    return {"message": "Product deleted successfully"}


@router.post("/{product_id}/reviews")
def add_review(product_id: str, body: ReviewBody, user=Depends(get_current_user), db=Depends(get_db)):
    review = Review(
        rating=body.rating,
        comment=body.comment,
        userId=body.userId or user["userId"],
        userName=body.userName or user["name"],
        userAvatar=body.userAvatar or user.get("avatar"),
        date=utcnow(),
    ).model_dump()
    res = db["product"].update_one({"_id": to_object_id(product_id)}, {"$push": {"reviews": review}})
    if res.matched_count == 0:
        raise NotFoundError("Product not found")
    return {"message": "Review added", "review": serialize_doc(review)}
