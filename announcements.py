from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import create_document, get_db, get_documents, serialize_doc, to_object_id
from errors import ValidationError
from schemas import Announcement

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


class AnnouncementBody(BaseModel):
    text: str = ""


def all_announcements(db):
    return [serialize_doc(a) for a in get_documents(db, "announcement")]


@router.get("")
def list_announcements(db=Depends(get_db)):
    return all_announcements(db)


@router.post("")
def add_announcement(body: AnnouncementBody, db=Depends(get_db)):
    if not body.text.strip():
        raise ValidationError("Text is required")
    create_document(db, "announcement", Announcement(text=body.text))
    return all_announcements(db)


@router.delete("/{announcement_id}")
def delete_announcement(announcement_id: str, db=Depends(get_db)):
    db["announcement"].delete_one({"_id": to_object_id(announcement_id)})
    return all_announcements(db)
