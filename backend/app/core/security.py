"""
Security utilities: operator JWTs, casting tokens and voter identity hashing.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import hashlib
import hmac
import secrets

from jose import jwt, JWTError

from app.core.config import settings


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access"
    })

    encoded_jwt = jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def generate_casting_token() -> str:
    """Generate a secure single-use casting token."""
    return secrets.token_hex(32)


def hash_voter_identity(voter_id: str, election_id: str) -> str:
    """
    One-way hash of a voter identity, scoped to one election.

    Keyed with HASH_SECRET so the hash cannot be recomputed from a
    guessed identity without the server secret.
    """
    message = f"{voter_id}:{election_id}".encode()
    return hmac.new(settings.HASH_SECRET.encode(), message, hashlib.sha256).hexdigest()
