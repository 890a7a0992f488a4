from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import os

from snapgram.config import SESSIONS_COLLECTION_ID
from snapgram.db import DocumentNotFoundError, get_db

# ===========================
# 🔐 JWT CONFIGURATION
# ===========================
SECRET_KEY = os.getenv("SECRET_KEY", "snapgram-dev-secret")  # read from env with fallback
ALGORITHM = "HS256"
# Set default token expiry to 7 days (in minutes)
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))

# Initialize HTTP Bearer (instead of OAuth2)
security = HTTPBearer()


# ===========================
# ✅ CREATE ACCESS TOKEN
# ===========================
def create_access_token(data: dict, expires_delta: timedelta | None = None):
    """
    Create a signed JWT token with expiration time.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    token = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return token


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired. Please log in again.",
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or corrupted token.",
        )

    if payload.get("sub") is None or payload.get("sid") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user or session",
        )
    return payload


# ===========================
# ✅ VERIFY CURRENT USER
# ===========================
async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """
    Decode JWT from HTTP Bearer token and return user info.
    The session it was issued for must still exist (sign-out deletes it).
    """
    payload = decode_access_token(credentials.credentials)

    try:
        await get_db().get_document(SESSIONS_COLLECTION_ID, payload["sid"])
    except DocumentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
        )

    return {
        "user_id": payload["sub"],
        "username": payload.get("username"),
        "session_id": payload["sid"],
    }
