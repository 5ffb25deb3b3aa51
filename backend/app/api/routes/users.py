from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_current_user, get_db, require_roles
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserOut
from app.services import directory
from app.services.policy import ActorContext

router = APIRouter()


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_roles(UserRole.admin)),
) -> UserOut:
    user = directory.register_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        department=payload.department,
    )
    return UserOut.model_validate(user)


@router.get("/users/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)


@router.post("/users/{user_id}/deactivate", response_model=UserOut)
def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> UserOut:
    return UserOut.model_validate(directory.deactivate_user(db, actor, user_id))
