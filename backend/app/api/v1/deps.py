"""
API dependencies for operator authentication.
"""
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.security import decode_token


security = HTTPBearer(auto_error=False)

OPERATOR_ROLES = ["admin", "operator"]


async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[Dict[str, Any]]:
    """
    Decode the bearer JWT, if any.
    Returns None if no valid token is provided.
    """
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None

    return payload


def require_role(allowed_roles: List[str]):
    """
    Factory function to create a dependency that requires specific roles.
    """
    async def role_checker(
        payload: Optional[Dict[str, Any]] = Depends(get_token_payload)
    ) -> Dict[str, Any]:
        if not payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if payload.get("role") not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return payload

    return role_checker


require_operator = require_role(OPERATOR_ROLES)
