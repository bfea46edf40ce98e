"""
Users API Router

Profile and preference records.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ultimate.core.database import get_db
from ultimate.schemas import UserCreate, UserResponse, UserUpdate
from ultimate.services import record_store

router = APIRouter(prefix="/v1/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
async def list_users(db: Session = Depends(get_db)):
    return record_store.users.list_all(db)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return record_store.users.create(db, **payload.model_dump())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: Session = Depends(get_db)):
    return record_store.users.get(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(user_id: UUID, payload: UserUpdate, db: Session = Depends(get_db)):
    return record_store.users.update(db, user_id, **payload.model_dump(exclude_unset=True))


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(user_id: UUID, db: Session = Depends(get_db)):
    return record_store.users.soft_delete(db, user_id)
