import jwt
from datetime import datetime, timedelta, timezone
from posledger.config import settings

def create_token(sub: str, secret: str | None = None, exp_min: int | None = None) -> str:
    """Device token for the cloud ingest API; `sub` is the tenant id."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=exp_min or settings.JWT_EXP_MIN)
    payload = {"sub": sub, "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, secret or settings.APP_SECRET, algorithm="HS256")

def decode_token(token: str, secret: str | None = None) -> dict:
    return jwt.decode(token, secret or settings.APP_SECRET, algorithms=["HS256"], options={"verify_aud": False})
