"""TOTP two-factor authentication for admin accounts.

Secrets are stored encrypted with a Fernet key derived from
``TWO_FACTOR_ENCRYPTION_KEY``. Backup codes are stored as a JSON list of
SHA-256 hashes and removed once used.
"""

import base64
import hashlib
import io
import json
import os
import secrets
import uuid

import pyotp
import qrcode
import qrcode.image.svg
import structlog
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminDB
from duely.services.errors import DomainValidationError, NotFoundError

logger = structlog.get_logger(__name__)

ISSUER_NAME = "Duely Admin"
VALID_WINDOW = 2
BACKUP_CODE_COUNT = 10
KDF_SALT = b"duely-admin-2fa"
KDF_ITERATIONS = 100_000


def _cipher() -> Fernet:
    master_key = os.getenv("TWO_FACTOR_ENCRYPTION_KEY")
    if not master_key:
        raise RuntimeError("TWO_FACTOR_ENCRYPTION_KEY environment variable not set")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    key = base64.urlsafe_b64encode(kdf.derive(master_key.encode()))
    return Fernet(key)


def encrypt_secret(secret: str) -> str:
    return _cipher().encrypt(secret.encode("utf-8")).decode("ascii")


def decrypt_secret(encrypted: str) -> str:
    return _cipher().decrypt(encrypted.encode("ascii")).decode("utf-8")


def generate_totp_secret(account_name: str) -> tuple[str, str]:
    """Return a new base32 secret and its ``otpauth://`` provisioning URI."""
    secret = pyotp.random_base32(length=32)
    uri = pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=ISSUER_NAME)
    return secret, uri


def generate_qr_code(otpauth_uri: str) -> str:
    """SVG QR code for ``otpauth_uri`` as a ``data:`` URI."""
    image = qrcode.make(otpauth_uri, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def verify_totp(token: str, secret: str) -> bool:
    """Check a 6-digit code, tolerating two time steps of clock drift."""
    if not token or not token.strip().isdigit():
        return False
    return pyotp.TOTP(secret).verify(token.strip(), valid_window=VALID_WINDOW)


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> list[str]:
    codes = []
    for _ in range(count):
        raw = secrets.token_hex(4).upper()
        codes.append(f"{raw[:4]}-{raw[4:]}")
    return codes


def hash_backup_code(code: str) -> str:
    return hashlib.sha256(code.strip().upper().encode("utf-8")).hexdigest()


class TwoFactorService:
    """Enrolment, verification and backup codes for one admin at a time."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_admin(self, admin_id: uuid.UUID) -> AdminDB:
        admin = await self.db_session.get(AdminDB, admin_id)
        if admin is None:
            raise NotFoundError("Admin not found")
        return admin

    @staticmethod
    def _stored_codes(admin: AdminDB) -> list[str]:
        if not admin.backup_codes:
            return []
        return json.loads(admin.backup_codes)

    async def begin_setup(self, admin_id: uuid.UUID) -> dict:
        """Generate a secret for the admin to scan; nothing is stored yet."""
        admin = await self._get_admin(admin_id)
        secret, uri = generate_totp_secret(admin.email)
        return {"secret": secret, "qr_code": generate_qr_code(uri), "otpauth_url": uri}

    async def complete_setup(self, admin_id: uuid.UUID, secret: str, token: str) -> list[str]:
        """Enable 2FA once the admin proves their authenticator works.

        Returns:
            The plaintext backup codes, shown to the admin exactly once
        """
        if not verify_totp(token, secret):
            raise DomainValidationError("Invalid verification code")

        admin = await self._get_admin(admin_id)
        codes = generate_backup_codes()
        admin.two_factor_secret = encrypt_secret(secret)
        admin.backup_codes = json.dumps([hash_backup_code(c) for c in codes])
        admin.two_factor_enabled = True
        await self.db_session.commit()

        logger.info("two_factor_enabled", admin_id=str(admin_id))
        return codes

    async def verify_token(self, admin_id: uuid.UUID, token: str) -> bool:
        admin = await self._get_admin(admin_id)
        if not admin.two_factor_enabled or not admin.two_factor_secret:
            raise DomainValidationError("2FA is not enabled for this user")

        try:
            secret = decrypt_secret(admin.two_factor_secret)
        except InvalidToken:
            logger.error("two_factor_secret_unreadable", admin_id=str(admin_id))
            return False
        return verify_totp(token, secret)

    async def verify_backup_code(self, admin_id: uuid.UUID, code: str) -> bool:
        """Accept an unused backup code and consume it."""
        admin = await self._get_admin(admin_id)
        if not admin.two_factor_enabled:
            raise DomainValidationError("2FA is not enabled for this user")

        hashed = hash_backup_code(code)
        stored = self._stored_codes(admin)
        if hashed not in stored:
            return False

        admin.backup_codes = json.dumps([c for c in stored if c != hashed])
        await self.db_session.commit()
        logger.info("backup_code_used", admin_id=str(admin_id), remaining=len(stored) - 1)
        return True

    async def verify(self, admin_id: uuid.UUID, token: str, is_backup_code: bool = False) -> bool:
        if is_backup_code:
            return await self.verify_backup_code(admin_id, token)
        return await self.verify_token(admin_id, token)

    async def disable(self, admin_id: uuid.UUID) -> None:
        admin = await self._get_admin(admin_id)
        admin.two_factor_enabled = False
        admin.two_factor_secret = None
        admin.backup_codes = None
        await self.db_session.commit()
        logger.warning("two_factor_disabled", admin_id=str(admin_id))

    async def status(self, admin_id: uuid.UUID) -> dict:
        admin = await self._get_admin(admin_id)
        return {
            "enabled": admin.two_factor_enabled,
            "backup_codes_remaining": len(self._stored_codes(admin)),
        }

    async def remaining_backup_codes(self, admin_id: uuid.UUID) -> int:
        return len(self._stored_codes(await self._get_admin(admin_id)))

    async def regenerate_backup_codes(self, admin_id: uuid.UUID) -> list[str]:
        admin = await self._get_admin(admin_id)
        if not admin.two_factor_enabled:
            raise DomainValidationError("2FA is not enabled for this user")

        codes = generate_backup_codes()
        admin.backup_codes = json.dumps([hash_backup_code(c) for c in codes])
        await self.db_session.commit()
        logger.info("backup_codes_regenerated", admin_id=str(admin_id))
        return codes
