"""Session tokens.

A session token is a signed JWT whose ``jti`` names a row in the
sessions table. The token alone proves nothing: a session is live only
while its row exists, is not revoked and has not expired. Role facts are
never carried in the token.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple
import uuid

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from memberguard.core.config import Settings, get_settings
from memberguard.db.models import Session as SessionModel


def create_session_token(
    user_id: str,
    db: Session,
    *,
    settings: Optional[Settings] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a session JWT and persist its session record."""
    settings = settings or get_settings()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.session_expire_minutes)

    # Unique JWT ID ties the token to its session row
    jti = str(uuid.uuid4())

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "jti": jti,
        "type": "session",
    }
    token = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    session = SessionModel(
        user_id=str(user_id),
        token_jti=jti,
        ip_address=ip_address,
        user_agent=user_agent,
        expires_at=expire,
    )
    db.add(session)
    db.commit()

    return token


def decode_session_claims(token: str, settings: Optional[Settings] = None) -> Optional[Tuple[str, str]]:
    """Verify a token's signature and expiry. Returns (user_id, jti) or None."""
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    user_id = payload.get("sub")
    jti = payload.get("jti")
    if not user_id or not jti or payload.get("type") != "session":
        return None
    return str(user_id), str(jti)


def revoke_session(jti: str, db: Session) -> bool:
    """Revoke a session by JWT ID."""
    session = db.query(SessionModel).filter(SessionModel.token_jti == jti).first()
    if session and session.revoked_at is None:
        session.revoked_at = datetime.utcnow()
        db.commit()
        return True
    return False


def revoke_user_sessions(user_id: str, db: Session, except_jti: Optional[str] = None) -> int:
    """Revoke all sessions for a user (except optionally one session)."""
    query = db.query(SessionModel).filter(
        SessionModel.user_id == str(user_id),
        SessionModel.revoked_at.is_(None)
    )

    if except_jti:
        query = query.filter(SessionModel.token_jti != except_jti)

    count = 0
    for session in query.all():
        session.revoked_at = datetime.utcnow()
        count += 1

    if count > 0:
        db.commit()

    return count
