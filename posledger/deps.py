from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from posledger.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(request: Request, creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials, request.app.state.secret)
        return data["sub"]
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_tenant(tenant_id: str, sub: str = Depends(require_auth)) -> str:
    # a device token only writes/reads its own tenant
    if sub != tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token not valid for this tenant")
    return tenant_id

def get_device(request: Request):
    return request.app.state.device
