from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.logging import log_event
from ..core.security import decode_token, issue_token_pair
from ..crud.users import DuplicateEmailError, authenticate_user, create_user
from ..db.session import get_db
from ..models.user import User
from ..schemas.auth import LoginRequest, RefreshRequest, RegisterRequest, TokenResponse, UserOut

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("app.auth")


def _token_response(user: User) -> TokenResponse:
    pair = issue_token_pair(user.id, user.email, user.role)
    return TokenResponse(**pair.model_dump(), user=UserOut.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=201, summary="Register a new user")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    try:
        user = create_user(db, email=payload.email, password=payload.password, role=payload.role)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    log_event(logger, "auth.registered", user_id=user.id, role=user.role)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse, summary="Exchange credentials for JWTs")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, email=payload.email, password=payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        claims = decode_token(payload.refresh_token, verify_type="refresh")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    # Re-issue from the stored account so role changes take effect on refresh.
    user = db.get(User, claims.sub)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return _token_response(user)
