"""
Bearer-token authentication against Firebase Authentication.

A single FirebaseTokenVerifier is built at process start (see app.main) and
stored on app.state; handlers receive it through get_identity_verifier, so
tests can inject a fake verifier without touching module globals.
"""
import logging
import time
from typing import Optional

import jwt  # PyJWT
import requests
from fastapi import Depends, Header, Request
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import AppError, IdentityServiceUnavailableError, UnauthorizedError

logger = logging.getLogger(__name__)

# Stale keys are still accepted for this long when Google's endpoint is unreachable
STALE_JWKS_MAX_AGE = 86400


class Identity(BaseModel):
    """Claims we rely on from a verified ID token."""
    uid: str
    email: Optional[str] = None


class IdentityVerifier:
    """Validates a bearer credential and returns the caller's identity."""

    def verify(self, token: str) -> Identity:
        raise NotImplementedError


class FirebaseTokenVerifier(IdentityVerifier):
    """
    Verifies Firebase ID tokens (RS256) using Google's published JWKS.
    Keys are cached for `cache_ttl` seconds; only successful fetches are cached.
    """

    def __init__(self, project_id: str, jwks_url: str, cache_ttl: int = 3600,
                 max_retries: int = 3, http_timeout: int = 10):
        if not project_id:
            raise ValueError("FIREBASE_PROJECT_ID is required to verify ID tokens")
        self.project_id = project_id
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.max_retries = max_retries
        self.http_timeout = http_timeout
        self.issuer = f"https://securetoken.google.com/{project_id}"
        self._jwks = None
        self._jwks_fetched_at = None

    @classmethod
    def from_settings(cls) -> "FirebaseTokenVerifier":
        return cls(
            project_id=settings.FIREBASE_PROJECT_ID,
            jwks_url=settings.FIREBASE_JWKS_URL,
            cache_ttl=settings.JWKS_CACHE_TTL,
        )

    def get_jwks(self, force_refresh: bool = False) -> Optional[dict]:
        """Fetch the JWKS with caching and retry logic."""
        if self._jwks and not force_refresh and self._jwks_fetched_at:
            if time.time() - self._jwks_fetched_at < self.cache_ttl:
                return self._jwks

        last_error = None
        for attempt in range(self.max_retries):
            try:
                logger.info("[AUTH] Fetching JWKS from %s (attempt %d/%d)", self.jwks_url, attempt + 1, self.max_retries)
                r = requests.get(self.jwks_url, timeout=self.http_timeout)
                r.raise_for_status()
                jwks = r.json()
                self._jwks = jwks
                self._jwks_fetched_at = time.time()
                logger.info("[AUTH] Fetched JWKS with %d keys", len(jwks.get("keys", [])))
                return jwks
            except requests.exceptions.RequestException as e:
                last_error = str(e)
                logger.warning("[AUTH] JWKS fetch failed (attempt %d/%d): %s", attempt + 1, self.max_retries, last_error)
                if attempt < self.max_retries - 1:
                    time.sleep(1)

        logger.error("[AUTH] Failed to fetch JWKS after %d attempts: %s", self.max_retries, last_error)
        return None

    def _signing_key(self, kid: str):
        jwks = self.get_jwks()
        if not jwks and self._jwks:
            cache_age = time.time() - (self._jwks_fetched_at or 0)
            if cache_age < STALE_JWKS_MAX_AGE:
                logger.warning("[AUTH] Using stale JWKS cache (age: %.0fs) as fallback", cache_age)
                jwks = self._jwks
        if not jwks:
            raise IdentityServiceUnavailableError()

        key = _find_key(jwks, kid)
        if key is None:
            # Google rotates keys; refresh once before giving up
            jwks = self.get_jwks(force_refresh=True)
            key = _find_key(jwks, kid) if jwks else None
        if key is None:
            raise UnauthorizedError("Invalid token: unknown signing key")
        return jwt.PyJWK(key).key

    def verify(self, token: str) -> Identity:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.DecodeError as e:
            logger.info("[AUTH] Failed to decode token header: %s", e)
            raise UnauthorizedError("Invalid token header")

        algo = header.get("alg")
        kid = header.get("kid")
        if algo != "RS256" or not kid:
            logger.info("[AUTH] Unsupported token algorithm: %s", algo)
            raise UnauthorizedError(f"Unsupported token algorithm: {algo}")

        signing_key = self._signing_key(kid)
        try:
            payload = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as e:
            logger.info("[AUTH] Token verification failed: %s", e)
            raise UnauthorizedError("Invalid token")

        uid = payload.get("sub")
        if not uid:
            raise UnauthorizedError("Token missing user ID claim")
        return Identity(uid=uid, email=payload.get("email"))


def _find_key(jwks: dict, kid: str) -> Optional[dict]:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Unauthorized")

    token = authorization[len("Bearer "):].strip()
    # Reject common invalid token values sent by broken clients
    if not token or token.lower() in ("null", "undefined", "none"):
        raise UnauthorizedError("Invalid token")
    if len(token.split(".")) != 3:
        raise UnauthorizedError("Invalid token format")
    return token


def get_identity_verifier(request: Request) -> IdentityVerifier:
    verifier = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        logger.error("[AUTH] No identity verifier configured on the application")
        raise AppError("Server misconfiguration: identity verifier not configured")
    return verifier


def get_current_identity(
    authorization: Optional[str] = Header(None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    """
    FastAPI dependency that verifies the bearer token and returns the caller.
    This is the main dependency to use in route handlers.
    """
    token = extract_bearer_token(authorization)
    return verifier.verify(token)
