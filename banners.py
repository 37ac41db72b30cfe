from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo import ReturnDocument

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import Banner as BannerSchema
from security import require_admin_key

router = APIRouter(prefix="/api/banner", tags=["banners"])
admin = APIRouter(prefix="/api/banner/admin", tags=["banners"], dependencies=[Depends(require_admin_key)])

WEBP_PREFIX = "data:image/webp;base64,"
DISPLAY_ORDER = [("order", 1), ("createdAt", -1)]


class BannerUpdateBody(BaseModel):
    image: Optional[str] = None
    isActive: Optional[bool] = None
    order: Optional[int] = None


@router.get("/active")
def active_banners(db=Depends(get_db)):
    return [serialize_doc(b) for b in db["banner"].find({"isActive": True}).sort(DISPLAY_ORDER)]


@router.get("/banners")
def all_banners(db=Depends(get_db)):
    return [serialize_doc(b) for b in db["banner"].find().sort(DISPLAY_ORDER)]


@admin.post("/create", status_code=201)
def create_banner(body: BannerSchema, db=Depends(get_db)):
    if not body.image or not body.image.startswith(WEBP_PREFIX):
        raise ValidationError("Valid WebP Base64 image required")
    banner_id = create_document(db, "banner", body)
    return {"message": "Banner created", "banner": serialize_doc(db["banner"].find_one({"_id": to_object_id(banner_id)}))}


@admin.put("/update/{banner_id}")
def update_banner(banner_id: str, body: BannerUpdateBody, db=Depends(get_db)):
    update = body.model_dump(exclude_none=True)
    if "image" in update and not update["image"].startswith(WEBP_PREFIX):
        raise ValidationError("Invalid WebP Base64 image")
    update["updatedAt"] = utcnow()
    banner = db["banner"].find_one_and_update(
        {"_id": to_object_id(banner_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not banner:
        raise NotFoundError("Banner not found")
    return {"message": "Banner updated", "banner": serialize_doc(banner)}


@admin.delete("/delete/{banner_id}")
def delete_banner(banner_id: str, db=Depends(get_db)):
    res = db["banner"].delete_one({"_id": to_object_id(banner_id)})
    if res.deleted_count == 0:
        raise NotFoundError("Banner not found")
    return {"message": "Banner deleted"}


@admin.patch("/toggle/{banner_id}")
def toggle_banner(banner_id: str, db=Depends(get_db)):
    oid = to_object_id(banner_id)
    banner = db["banner"].find_one({"_id": oid})
    if not banner:
        raise NotFoundError("Banner not found")
    banner = db["banner"].find_one_and_update(
        {"_id": oid}, {"$set": {"isActive": not banner.get("isActive", True)}}, return_document=ReturnDocument.AFTER
    )
    return {"message": "Status toggled", "banner": serialize_doc(banner)}
