from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.security import get_password_hash
from app.db.store import commit, fetch_all, fetch_scalar, get_record, store_operation
from app.models.user import User, UserRole
from app.services.audit import log_activity
from app.services.policy import ActorContext

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def actor_from_user(user: User) -> ActorContext:
    return ActorContext(id=user.id, role=user.role, department=user.department)


def get_user(db: Session, user_id: str) -> User:
    user = get_record(db, User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    matches = fetch_all(db, select(User).where(User.email == normalize_email(email)))
    return matches[0] if matches else None


def get_active_hod(db: Session, department: str) -> User | None:
    matches = fetch_all(
        db,
        select(User).where(
            User.department == department,
            User.role == UserRole.hod,
            User.is_active.is_(True),
        ),
    )
    return matches[0] if matches else None


def count_department_faculty(db: Session, department: str | None) -> int:
    statement = select(func.count(User.id)).where(User.role == UserRole.faculty, User.is_active.is_(True))
    if department is not None:
        statement = statement.where(User.department == department)
    return int(fetch_scalar(db, statement))


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    department: str,
) -> User:
    name = (name or "").strip()
    department = (department or "").strip()
    email = normalize_email(email)
    if not name:
        raise ValidationError("Name is required")
    if not department:
        raise ValidationError("Department is required")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    existing = fetch_all(db, select(User).where(User.email == email))
    if existing:
        raise ValidationError("Email already registered", details={"email": email})
    if role == UserRole.hod and get_active_hod(db, department) is not None:
        raise ValidationError(
            "Department already has an active HOD",
            details={"department": department},
        )

    user = User(
        name=name,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        department=department,
        is_active=True,
    )
    try:
        db.add(user)
        db.flush()
    except IntegrityError as exc:
        # Lost a race against a concurrent registration for the same email or HOD seat.
        db.rollback()
        raise ValidationError("User conflicts with an existing record") from exc
    commit(db)
    logger.info("Registered %s %s in department %s", role.value, user.id, department)
    return user


def deactivate_user(db: Session, actor: ActorContext, user_id: str) -> User:
    if actor.role != UserRole.admin:
        raise ForbiddenError("Only administrators can deactivate users")
    user = get_user(db, user_id)
    if not user.is_active:
        return user
    with store_operation(db, "deactivate user"):
        user.is_active = False
        log_activity(
            db,
            actor=actor,
            action="user.deactivated",
            entity_type="user",
            entity_id=user.id,
            department=user.department,
        )
        db.flush()
    commit(db)
    logger.info("User %s deactivated by %s", user.id, actor.id)
    return user
