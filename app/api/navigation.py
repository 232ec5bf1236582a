from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.navigation import NavigationStateIn, NavigationStateOut
from app.services import navigation_service

router = APIRouter(prefix="/navigation", tags=["Navigation"])


@router.get("", response_model=NavigationStateOut)
def get_state(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return navigation_service.load_state(db, user)


@router.put("", response_model=NavigationStateOut)
def save_state(data: NavigationStateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return navigation_service.save_state(db, user, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.delete("", status_code=204)
def clear_state(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    navigation_service.clear_state(db, user)
