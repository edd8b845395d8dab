"""Authentication API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import Session as AuthSession, verify_token
from database import get_db
from dependencies import get_user_service
from schemas import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["authentication"])


def _login_response(user_service: UserService, user, token: str) -> LoginResponse:
    session = user_service.session_for(token)
    return LoginResponse(
        token=token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=LoginResponse, status_code=201)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    user_service: UserService = Depends(get_user_service)
):
    """Create a customer account and return a session token."""
    user, token = user_service.register(db, request.name, request.email, request.password)
    return _login_response(user_service, user, token)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    user_service: UserService = Depends(get_user_service)
):
    """Authenticate with email and password and return a session token."""
    user, token = user_service.login(db, request.email, request.password)
    return _login_response(user_service, user, token)


@router.get("/me", response_model=UserResponse)
async def me(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    user_service: UserService = Depends(get_user_service)
):
    """Account behind the current session."""
    return user_service.get_user(db, session.user_id)
