import logging
import secrets
from datetime import timedelta

from fastapi import Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.orm import Session

import config
from database import commit
from models import User, UserSession, utcnow
from schemas import TokenPayload

logger = logging.getLogger(__name__)

# Password hashing using bcrypt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Reads "Authorization: Bearer <token>"; yields None when the header is absent
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="graphql", auto_error=False)


# Helper function to hash a password
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# Helper function to verify a plain-text password against a hashed password
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# Helper function to create a JWT access token for a user id
def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    settings = config.settings
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": str(user_id), "exp": utcnow() + expires_delta}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> int | None:
    """Return the user id asserted by ``token``, or None if it does not verify."""
    settings = config.settings
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload).user_id
    except (JWTError, ValidationError, ValueError):
        return None


# --- Server-side sessions ---

def _set_session_cookie(response: Response, sid: str) -> None:
    settings = config.settings
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sid,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        domain=settings.session_cookie_domain,
        path="/",
    )


def _drop_session(db: Session, sid: str) -> None:
    db.execute(delete(UserSession).where(UserSession.sid == sid).execution_options(synchronize_session="fetch"))


def start_session(db: Session, request: Request, response: Response, user: User) -> UserSession:
    """
    Store a new session for ``user`` and hand its id to the client as a cookie.

    A session id the client already holds is discarded first, so a login never
    keeps (or adopts) an earlier sid.
    """
    previous_sid = request.cookies.get(config.settings.session_cookie_name)
    if previous_sid:
        _drop_session(db, previous_sid)
    session = UserSession(
        sid=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=utcnow() + timedelta(seconds=config.settings.session_max_age_seconds),
    )
    db.add(session)
    commit(db)
    _set_session_cookie(response, session.sid)
    return session


def end_session(db: Session, request: Request, response: Response) -> bool:
    """Delete the request's session (if any) and clear the cookie. Returns True either way."""
    settings = config.settings
    sid = request.cookies.get(settings.session_cookie_name)
    if sid:
        _drop_session(db, sid)
        commit(db)
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        domain=settings.session_cookie_domain,
        secure=settings.session_cookie_secure,
        httponly=True,
        samesite=settings.session_cookie_samesite,
    )
    return True


def get_session_user(db: Session, request: Request, response: Response | None = None) -> User | None:
    """
    Resolve the user bound to the request's session cookie.

    Sessions are rolling: every successful lookup pushes the expiry forward and
    re-issues the cookie. Expired sessions and sessions whose user is gone are
    removed.
    """
    settings = config.settings
    sid = request.cookies.get(settings.session_cookie_name)
    if not sid:
        return None

    session = db.get(UserSession, sid)
    if session is None:
        return None

    now = utcnow()
    user = db.get(User, session.user_id)
    if session.is_expired(now) or user is None:
        logger.debug("Dropping stale session for user_id=%s", session.user_id)
        db.delete(session)
        commit(db)
        return None

    session.expires_at = now + timedelta(seconds=settings.session_max_age_seconds)
    commit(db)
    if response is not None:
        _set_session_cookie(response, sid)
    return user


def purge_expired_sessions(db: Session) -> int:
    result = db.execute(
        delete(UserSession)
        .where(UserSession.expires_at <= utcnow())
        .execution_options(synchronize_session="fetch")
    )
    commit(db)
    return result.rowcount or 0


def resolve_current_user(
    db: Session,
    request: Request,
    response: Response | None = None,
    token: str | None = None,
) -> User | None:
    """
    Identity for one request: a live session wins, then a bearer token.

    Neither being present (or valid) yields None, not an error.
    """
    user = get_session_user(db, request, response)
    if user is not None:
        return user
    if token:
        user_id = decode_access_token(token)
        if user_id is not None:
            return db.get(User, user_id)
    return None
