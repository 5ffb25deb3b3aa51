import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.security import create_access_token, verify_password
from app.models.user import User
from app.schemas.user import Token, UserLogin, UserOut
from app.services.directory import get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter()


def validate_login_user(payload: UserLogin, db: Session) -> User:
    user = get_user_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    if payload.role and payload.role != user.role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role does not match user account")
    return user


@router.post("/login", response_model=Token)
def login(payload: UserLogin, db: Session = Depends(get_db)) -> Token:
    user = validate_login_user(payload, db)
    access_token = create_access_token(user.id, extra_claims={"role": user.role.value})
    logger.info("User %s signed in", user.id)
    return Token(access_token=access_token, token_type="bearer", user=UserOut.model_validate(user))
