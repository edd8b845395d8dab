"""Account registration and login."""
import logging
from typing import Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import Session as AuthSession, create_access_token, decode_session, hash_password, verify_password
from errors import ConflictError, NotFoundError, UnauthorizedError
from models import User
from monitoring import auth_attempts_counter, auth_failures_counter

logger = logging.getLogger(__name__)


class UserService:
    """Service for customer accounts."""

    def register(self, db: Session, name: str, email: str, password: str) -> Tuple[User, str]:
        """
        Create a customer account and sign it in.

        Returns:
            The new user and a session token

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.lower()
        if db.query(User).filter(User.email == email).first() is not None:
            raise ConflictError("Email already exists")

        user = User(name=name, email=email, password_hash=hash_password(password), role="user")
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email already exists")
        db.refresh(user)

        logger.info("User registered", extra={"user_id": user.id})
        return user, self._issue_token(user)

    def login(self, db: Session, email: str, password: str) -> Tuple[User, str]:
        """
        Check credentials and issue a session token.

        Raises:
            UnauthorizedError: If the email is unknown or the password is wrong
        """
        auth_attempts_counter.add(1, {"type": "login"})

        user = db.query(User).filter(User.email == email.lower()).first()
        if user is None or not verify_password(password, user.password_hash):
            auth_failures_counter.add(1, {"reason": "invalid_credentials"})
            logger.warning("Login failed: Invalid credentials")
            raise UnauthorizedError("Invalid credentials")

        logger.info("User logged in successfully", extra={"user_id": user.id})
        return user, self._issue_token(user)

    def get_user(self, db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _issue_token(user: User) -> str:
        return create_access_token(user.id, user.name, user.email, user.role)

    @staticmethod
    def session_for(token: str) -> AuthSession:
        return decode_session(token)
