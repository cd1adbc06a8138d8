from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from jose.exceptions import JWTError


def extract_token(auth: Optional[Dict[str, Any]], args=None) -> Optional[str]:
    """Token from the Socket.IO `auth` payload, falling back to `?token=`."""
    token = None
    if isinstance(auth, dict):
        token = auth.get('token')
    if not token and args is not None:
        token = args.get('token')
    return token or None


class TokenAuthenticator:
    """Maps a bearer token to a pre-established identity/session pair.

    Tokens are HS256 JWTs carrying `userId` and `sessionId`. Anything that
    fails to decode is treated as no credential at all.
    """

    def __init__(self, secret: str, algorithm: str = 'HS256', ttl_hours: int = 24, logger=None):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_hours = ttl_hours
        self.logger = logger

    @classmethod
    def from_config(cls, config, logger=None) -> 'TokenAuthenticator':
        return cls(
            config['TOKEN_SECRET'],
            algorithm=config.get('TOKEN_ALGORITHM', 'HS256'),
            ttl_hours=int(config.get('TOKEN_TTL_HOURS', 24)),
            logger=logger,
        )

    def generate_token(self, payload: Dict[str, Any]) -> str:
        claims = dict(payload)
        claims['exp'] = datetime.now(timezone.utc) + timedelta(hours=self.ttl_hours)
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            if self.logger:
                self.logger.warning(f"[auth-reject] token validation failed: {exc}")
            return None

    def authenticate(self, auth: Optional[Dict[str, Any]], args=None) -> Optional[Dict[str, str]]:
        token = extract_token(auth, args)
        if not token:
            return None
        payload = self.verify_token(token)
        if not payload or not payload.get('userId') or not payload.get('sessionId'):
            return None
        return {
            'user_id': str(payload['userId']),
            'session_id': str(payload['sessionId']).upper(),
        }
