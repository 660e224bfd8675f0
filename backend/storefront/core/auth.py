# storefront/core/auth.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from firebase_admin import auth as fb_auth

from storefront.config import init_firebase, settings
from storefront.schemas.principal import Identity

MOCK_PREFIX = "mock_jwt_token_"


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Reads the token from `Authorization: Bearer <id_token>`.
    Returns None when absent.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_mock_token(mock_token: str) -> dict:
    """
    Development-only token (DEBUG=true).
    Format: mock_jwt_token_<uid>; a uid containing "anonymous" is a guest.
    """
    uid = mock_token[len(MOCK_PREFIX):]
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid mock token format")
    return {
        "uid": uid,
        "email": None,
        "firebase": {"sign_in_provider": "anonymous" if "anonymous" in uid else "password"},
        "admin": False,
    }


def _decode_id_token(id_token: str) -> dict:
    """
    Firebase ID token verification (with revocation check).
    Invalid, revoked or expired tokens answer 401.
    """
    if settings.debug and id_token.startswith(MOCK_PREFIX):
        return _decode_mock_token(id_token)

    init_firebase()
    try:
        return fb_auth.verify_id_token(id_token, check_revoked=True)
    except fb_auth.ExpiredIdTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired",
                            headers={"WWW-Authenticate": "Bearer"})
    except fb_auth.RevokedIdTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session revoked",
                            headers={"WWW-Authenticate": "Bearer"})
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail=f"Invalid Firebase ID token: {exc}",
                            headers={"WWW-Authenticate": "Bearer"})


def token_to_identity(decoded: dict) -> Identity:
    """
    - anonymous provider -> role='guest'
    - custom claim admin=True -> role='admin'
    - otherwise -> role='user'
    """
    uid = decoded.get("uid") or decoded.get("user_id") or decoded.get("sub")
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token missing uid.")

    provider = (decoded.get("firebase") or {}).get("sign_in_provider")
    if provider == "anonymous":
        role = "guest"
    elif decoded.get("admin") is True:
        role = "admin"
    else:
        role = "user"
    return Identity(id=str(uid), email=decoded.get("email"), role=role)


class RequestIdentityProvider:
    """
    Identity provider bound to one request's bearer token.
    The token is verified on every get_current_user() call, so an identity revoked
    between page load and checkout is not used to attribute the order.
    """

    def __init__(self, token: Optional[str]):
        self._token = token

    def get_current_user(self) -> Optional[Identity]:
        if not self._token:
            return None
        identity = token_to_identity(_decode_id_token(self._token))
        # anonymous Firebase sessions own no remote cart/order rows
        return None if identity.is_guest else identity


# --------- FastAPI Dependencies --------- #

def get_identity_provider(request: Request) -> RequestIdentityProvider:
    return RequestIdentityProvider(_extract_bearer_token(request))


def get_optional_identity(provider: RequestIdentityProvider = Depends(get_identity_provider)) -> Optional[Identity]:
    """Token optional: verified when present, None otherwise (and for anonymous sessions)."""
    return provider.get_current_user()


def get_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    """Token required; anonymous sessions are rejected."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials were not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
