from fastapi import Depends, HTTPException, status, Header
from firebase_admin import auth, credentials, initialize_app, get_app
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional
import logging
import os
from .config import get_settings
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)


def init_firebase():
    """Initialise the default Firebase app once; later calls reuse it."""
    try:
        return get_app()
    except ValueError:
        pass

    cred_path = get_settings().firebase_credentials_path
    if os.path.exists(cred_path):
        return initialize_app(credentials.Certificate(cred_path))
    logger.info(f"Firebase credentials not found at {cred_path}, using application default credentials")
    return initialize_app()


async def verify_firebase_token(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    # Expect "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme",
        )

    try:
        init_firebase()
        return auth.verify_id_token(parts[1])
    except Exception as e:
        logger.warning(f"Rejected Firebase token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
        )

async def get_current_user(
    token_data: dict = Depends(verify_firebase_token),
    db: AsyncSession = Depends(get_db)
) -> User:
    firebase_uid = token_data["uid"]
    stmt = select(User).filter(User.firebase_uid == firebase_uid)
    result = await db.execute(stmt)
    user = result.scalars().first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found in system. Please register first via POST /users/",
        )
    if not user.farm_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No farm associated with user",
        )
    return user


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of ``roles`` on their farm."""
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user
    return checker
