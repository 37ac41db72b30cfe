from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import get_db, serialize_doc, utcnow
from errors import NotFoundError
from security import get_current_user, require_admin_key

router = APIRouter(prefix="/api", tags=["users"])

PRIVATE_FIELDS = {"password": 0, "resetPasswordToken": 0, "resetPasswordExpires": 0}


class ProfileUpdateBody(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None


def profile(user: dict) -> dict:
    user = serialize_doc(user)
    return {
        "_id": user["_id"],
        "name": user["name"],
        "email": user["email"],
        "phone": user.get("phone"),
        "avatar": user.get("avatar"),
        "userId": user["userId"],
        "createdAt": user.get("createdAt"),
    }


@router.get("/user/profile")
def get_profile(user=Depends(get_current_user)):
    return profile(user)


@router.put("/user/profile")
def update_profile(body: ProfileUpdateBody, user=Depends(get_current_user), db=Depends(get_db)):
    # empty strings are treated the same as absent fields
    update = {k: v for k, v in body.model_dump().items() if v}
    if update:
        update["updatedAt"] = utcnow()
        db["user"].update_one({"userId": user["userId"]}, {"$set": update})
    updated = db["user"].find_one({"userId": user["userId"]})
    if not updated:
        raise NotFoundError("User not found")
    return profile(updated)


@router.get("/users", dependencies=[Depends(require_admin_key)])
def list_users(db=Depends(get_db)):
    return [serialize_doc(u) for u in db["user"].find({}, PRIVATE_FIELDS).sort("createdAt", -1)]
