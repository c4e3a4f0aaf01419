import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from speakerdesk.auth import jwt_handler
from speakerdesk.auth.dependencies import get_current_user
from speakerdesk.auth.passwords import verify_password
from speakerdesk.database import get_db
from speakerdesk.models.user import User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'


class MeResponse(BaseModel):
    id: int
    email: str
    username: str
    role: str


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if user is None or not verify_password(data.password, user.hashed_password):
        logger.info('Rejected login for %s', data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid email or password.',
        )

    token = jwt_handler.create_access_token(subject=user.email, role=user.role)
    return TokenResponse(access_token=token)


@router.get('/me', response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        username=current_user.username,
        role=current_user.role,
    )
