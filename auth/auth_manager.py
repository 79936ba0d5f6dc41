"""
Identity collaborator: verifies bearer tokens and keeps the user registry.

This is not an authentication protocol. It trusts HS256 tokens signed with
JWT_SECRET and turns them into a user id; everything else (profiles,
permissions) lives in the RBAC layer.
"""


import jwt
import os
import dotenv
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from loguru import logger

from auth.models import User

dotenv.load_dotenv()


class AuthManager:
    """Token verification and user registry"""

    def __init__(self):
        self.jwt_secret = os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")
        self.jwt_expiry = int(os.getenv("JWT_EXPIRY_SECONDS", "3600"))
        self.algorithm = "HS256"
        logger.info("AuthManager initialized")

    # ==================== TOKENS ====================

    def issue_token(self, user_id: str, expires_in: int = None) -> str:
        """Issue an access token for a known user id"""
        logger.debug(f"[TOKEN] Issuing token for user: {user_id}")
        return jwt.encode(
            {
                "sub": user_id,
                "exp": datetime.utcnow() + timedelta(seconds=expires_in or self.jwt_expiry)
            },
            self.jwt_secret,
            algorithm=self.algorithm
        )

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify JWT token and return payload"""
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.algorithm])
            logger.debug(f"[TOKEN_VERIFY] Token verified successfully for user: {payload.get('sub')}")
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

    def resolve_caller(self, authorization: Optional[str]) -> Optional[str]:
        """
        Turn an Authorization header into a user id.
        Returns None for a missing, malformed, expired or forged token.
        """
        if not authorization or not authorization.startswith("Bearer "):
            return None

        token = authorization[len("Bearer "):].strip()
        payload = self.verify_token(token)
        if not payload:
            return None
        return payload.get("sub")

    # ==================== USER REGISTRY ====================

    def register_user(self, db: Session, email: str = None, name: str = None,
                      user_id: str = None) -> User:
        """Add a user to the registry (the sign-in provider calls this on first sign-in)"""
        user = User(email=email, name=name)
        if user_id:
            user.user_id = user_id
        db.add(user)
        db.commit()
        logger.info(f"[REGISTER] User registered: {user.user_id} ({email})")
        return user

    def get_user(self, db: Session, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        return db.query(User).filter_by(user_id=user_id).first()

    def list_users(self, db: Session) -> List[User]:
        return db.query(User).order_by(User.created_at).all()


# Global instance
auth_manager = AuthManager()
