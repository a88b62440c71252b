"""
Bearer-token handling for the HTTP boundary.

Tokens are verified here and their payload is handed to the claims
extractor. The resulting AuthContext is returned to the view and passed
explicitly to every policy and visibility call; it is never stashed on
flask.g or any other request-global.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from flask import current_app
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from shared.claims import AuthContext, build_claims, extract_auth_context
from shared.errors import Unauthenticated
from .models import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def check_password(user: User, password: str) -> bool:
    if not user or not user.hashed_password:
        return False
    return check_password_hash(user.hashed_password, password)


def issue_token(user: User) -> str:
    """Sign a token carrying the user's subject, realm and roles."""
    now = datetime.utcnow()
    claims = build_claims(user.id, user.realm_id, user.roles)
    claims.update({
        'iat': now,
        'exp': now + timedelta(hours=current_app.config['JWT_TTL_HOURS']),
    })
    return jwt.encode(
        claims,
        current_app.config['JWT_SECRET'],
        algorithm=current_app.config['JWT_ALGORITHM']
    )


def verify_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config['JWT_ALGORITHM']]
        )
    except JWTError as e:
        raise Unauthenticated("Invalid or expired token", reason="bad_token") from e


def bearer_token(req) -> Optional[str]:
    header = req.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def require_auth_context(req) -> AuthContext:
    """AuthContext for the request, or Unauthenticated."""
    token = bearer_token(req)
    if token is None:
        raise Unauthenticated()
    return extract_auth_context(verify_token(token))


def optional_auth_context(req) -> Optional[AuthContext]:
    """
    AuthContext for read paths.

    A missing, invalid or claim-incomplete token yields None, the most
    restrictive reader, instead of an error.
    """
    if bearer_token(req) is None:
        return None
    try:
        return require_auth_context(req)
    except Unauthenticated as e:
        logger.info(f"Treating request as anonymous: {e.message}")
        return None
