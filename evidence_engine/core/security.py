from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from evidence_engine.db.session import get_db
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.user import User


def get_current_user(
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the acting user from the X-User-Email dev header.

    This user is the explicit actor handed to every engine call, so audit rows
    and notifications never read identity from anywhere else.
    Example: X-User-Email: hr@local.test
    """
    email = (x_user_email or "").strip()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    user = db.scalars(select(User).where(User.email == email)).one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown or inactive user {email}")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden. Requires admin")
    return user


def assert_can_edit(user: User, evaluation: Evaluation) -> None:
    """Scores are written by the evaluation's evaluator; admins may correct them."""
    if user.is_admin or evaluation.evaluator_id == user.id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the evaluation's author can edit it")
