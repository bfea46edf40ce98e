"""
Progress Photos API Router

Photo metadata only; the image files are stored by the client.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ultimate.core.database import get_db
from ultimate.models import ProgressPhoto
from ultimate.schemas import ProgressPhotoCreate, ProgressPhotoResponse
from ultimate.services import record_store

router = APIRouter(prefix="/v1/photos", tags=["Progress Photos"])


@router.get("", response_model=List[ProgressPhotoResponse])
async def list_photos(challenge_id: Optional[UUID] = None, db: Session = Depends(get_db)):
    """Photos oldest first, optionally for one challenge."""
    if challenge_id is None:
        return record_store.photos.list_all(db)
    return (
        db.query(ProgressPhoto)
        .filter(ProgressPhoto.challenge_id == challenge_id, ProgressPhoto.is_deleted.is_(False))
        .order_by(ProgressPhoto.date, ProgressPhoto.created_at)
        .all()
    )


@router.post("", response_model=ProgressPhotoResponse, status_code=status.HTTP_201_CREATED)
async def create_photo(payload: ProgressPhotoCreate, db: Session = Depends(get_db)):
    challenge = record_store.challenges.get(db, payload.challenge_id)
    data = payload.model_dump()
    data["challenge_id"] = challenge.id
    return record_store.photos.create(db, **data)


@router.delete("/{photo_id}", response_model=ProgressPhotoResponse)
async def delete_photo(photo_id: UUID, db: Session = Depends(get_db)):
    return record_store.photos.soft_delete(db, photo_id)
