from typing import Annotated
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_session
from app.auth import models

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_session),
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("typ") != "access":
            raise JWTError
        uid = UUID(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise credentials_exception

    user = db.get(models.User, uid)
    if not user:
        raise credentials_exception
    return user

def get_current_tutor(
    user: models.User = Depends(get_current_user),
) -> models.User:
    if not user.is_tutor:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Only tutors can perform this action")
    return user
