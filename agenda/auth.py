import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .models import Tenant

logger = logging.getLogger(__name__)

security = HTTPBearer()

ROLE_OWNER = "OWNER"
ROLE_ADMIN = "ADMIN"
ROLE_PROFESSIONAL = "PROFESSIONAL"


class AuthContext(BaseModel):
    user_id: Optional[str] = None
    tenant_id: int
    role: str
    email: Optional[str] = None
    professional_id: Optional[int] = None


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token

    Args:
        data: Claims to encode (tenantId, role, userId, email, professionalId)
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> AuthContext:
    try:
        payload = jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    tenant_id = payload.get("tenantId")
    role = payload.get("role")
    if tenant_id is None or not role:
        logger.warning("JWT missing tenantId or role claim")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    try:
        return AuthContext(
            user_id=payload.get("userId"),
            tenant_id=int(tenant_id),
            role=str(role).upper(),
            email=payload.get("email"),
            professional_id=payload.get("professionalId"),
        )
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e


async def get_current_auth(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthContext:
    return decode_access_token(credentials.credentials)


async def get_current_tenant(
    auth: AuthContext = Depends(get_current_auth), db: Session = Depends(get_db)
) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == auth.tenant_id).first()
    if not tenant:
        logger.warning(f"❌ Tenant {auth.tenant_id} from token not found")
        raise HTTPException(status_code=401, detail="Tenant not found")
    if not tenant.is_active:
        raise HTTPException(status_code=403, detail="Tenant account is inactive")
    return tenant


def ensure_can_manage_calendar(auth: AuthContext, professional_id: int) -> None:
    """Professionals may only edit their own calendar; owners and admins edit any"""
    if auth.role in (ROLE_OWNER, ROLE_ADMIN):
        return
    if auth.role == ROLE_PROFESSIONAL and auth.professional_id == professional_id:
        return
    logger.warning(
        f"🚫 User {auth.user_id} ({auth.role}) tried to edit calendar of professional {professional_id}"
    )
    raise HTTPException(status_code=403, detail="Not allowed to manage this professional's calendar")


def require_manager(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
    if auth.role not in (ROLE_OWNER, ROLE_ADMIN):
        raise HTTPException(status_code=403, detail="Owner or admin role required")
    return auth
