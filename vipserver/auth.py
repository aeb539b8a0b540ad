"""
auth.py - Email/password accounts and bearer tokens.

  1. POST /api/auth/register -> profile + JWT
  2. POST /api/auth/login    -> JWT
  3. Authorization: Bearer <jwt> on every other call

resolve_account() maps the bearer token back to the stored profile.
"""

import logging
import secrets
import string
import time
import uuid
from typing import TYPE_CHECKING, Optional

import jwt as pyjwt
from fastapi import Header, HTTPException
from passlib.context import CryptContext

if TYPE_CHECKING:
    from vipserver.referrals import ReferralService
    from vipserver.storage import StorageManager

logger = logging.getLogger("auth")

JWT_TTL = 86400  # 24 hours
MIN_PASSWORD_LENGTH = 6
REFERRAL_CODE_LENGTH = 8
_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def public_profile(profile: dict) -> dict:
    return {k: v for k, v in profile.items() if k != "password_hash"}


class AuthService:
    """Account registration, login and role-based access."""

    def __init__(
        self,
        storage: "StorageManager",
        referrals: Optional["ReferralService"] = None,
        jwt_secret: str = "",
    ):
        self._storage = storage
        self._referrals = referrals
        self._jwt_secret = jwt_secret or secrets.token_hex(32)
        if not jwt_secret:
            logger.warning(
                "No --jwt-secret provided; generated ephemeral secret "
                "(JWTs will invalidate on restart)"
            )

    @staticmethod
    def generate_referral_code() -> str:
        return "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))

    async def _unique_referral_code(self) -> str:
        while True:
            code = self.generate_referral_code()
            if await self._storage.profiles.get_by_referral_code(code) is None:
                return code

    # -------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------

    def issue_jwt(self, user_id: str, role: str) -> str:
        now = int(time.time())
        payload = {
            "sub": user_id,
            "role": role,
            "iat": now,
            "exp": now + JWT_TTL,
        }
        return pyjwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def decode_jwt(self, token: str) -> Optional[dict]:
        try:
            return pyjwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except pyjwt.ExpiredSignatureError:
            return None
        except pyjwt.InvalidTokenError:
            return None

    # -------------------------------------------------------------------
    # Registration / login
    # -------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        username: str = "",
        referral_code: str = "",
        role: str = "user",
    ) -> dict:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValueError("A valid email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        username = (username or "").strip() or email.split("@", 1)[0]

        user_id = str(uuid.uuid4())
        password_hash = pwd_context.hash(password)
        async with self._storage.transaction():
            if await self._storage.profiles.get_by_email(email) is not None:
                raise ValueError("Email is already registered")
            referrer = None
            if referral_code:
                referrer = await self._storage.profiles.get_by_referral_code(referral_code.strip().upper())
                if referrer is None:
                    raise ValueError("Unknown referral code")
            await self._storage.profiles.create(
                user_id,
                email,
                username,
                password_hash,
                await self._unique_referral_code(),
                role=role,
                referred_by=referrer["user_id"] if referrer else None,
            )
            if referrer is not None and self._referrals is not None:
                await self._referrals.link(user_id, referrer["user_id"])
            await self._storage.stats.add_user()

        profile = await self._storage.profiles.get(user_id)
        logger.info("Registered user %s (%s) role=%s", user_id, email, role)
        return profile

    async def authenticate(self, email: str, password: str) -> dict:
        profile = await self._storage.profiles.get_by_email((email or "").strip())
        if profile is None or not pwd_context.verify(password or "", profile["password_hash"]):
            raise KeyError("Invalid email or password")
        return profile

    async def login(self, email: str, password: str) -> dict:
        profile = await self.authenticate(email, password)
        return {
            "token": self.issue_jwt(profile["user_id"], profile["role"]),
            "profile": public_profile(profile),
        }

    async def setup_admin(self, email: str, password: str):
        """Create the bootstrap admin, or promote an existing account."""
        if not email or not password:
            return
        existing = await self._storage.profiles.get_by_email(email)
        if existing is None:
            await self.register(email, password, username="admin", role="admin")
            logger.info("Bootstrap admin %s created", email)
        elif existing["role"] != "admin":
            async with self._storage.transaction():
                await self._storage.profiles.set_role(existing["user_id"], "admin")
            logger.info("Promoted %s to admin", email)

    # -------------------------------------------------------------------
    # FastAPI dependencies
    # -------------------------------------------------------------------

    async def resolve_account(self, authorization: str = Header(default="")) -> Optional[dict]:
        """Resolve a bearer token to its profile. Returns None if no credentials."""
        if not authorization.startswith("Bearer "):
            return None
        claims = self.decode_jwt(authorization[7:])
        if not claims:
            return None
        return await self._storage.profiles.get(claims.get("sub", ""))

    async def current_user(self, authorization: str = Header(default="")) -> dict:
        profile = await self.resolve_account(authorization)
        if profile is None:
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid credentials. Pass Authorization: Bearer <jwt>.",
            )
        return profile

    async def require_admin(self, authorization: str = Header(default="")) -> dict:
        profile = await self.current_user(authorization)
        if profile["role"] != "admin":
            raise HTTPException(status_code=403, detail="Admin access required")
        return profile
