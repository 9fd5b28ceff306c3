from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from school_backend.database import get_db
from school_backend.models.user import User, UserRole


class CurrentIdentity(BaseModel):
    user_id: int
    username: str
    role: UserRole


def get_current_identity(request: Request) -> CurrentIdentity:
    """Identity attached by the authentication gate for this request."""
    identity = getattr(request.state, 'identity', None)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Not authenticated',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    return identity


def get_current_user(
    identity: CurrentIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='User not found')
    return user


def is_role_permitted(role: UserRole, allowed_roles: Iterable[UserRole]) -> bool:
    return role in set(allowed_roles)


def require_roles(*roles: UserRole):
    """Route dependency that lets only the given roles through.

    Example:
        @router.get('', dependencies=[Depends(require_roles(UserRole.TEACHER, UserRole.ADMIN))])
    """
    allowed = frozenset(roles)

    def check_role(identity: CurrentIdentity = Depends(get_current_identity)) -> CurrentIdentity:
        if not is_role_permitted(identity.role, allowed):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')
        return identity

    return check_role
