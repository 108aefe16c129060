import base64
import hashlib
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from sqlalchemy import LargeBinary
from sqlalchemy.types import TypeDecorator

from app.core.settings import settings


def fernet_for(secret: str) -> Fernet:
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest()))


def build_cipher(current: str, previous: Iterable[str] = ()) -> MultiFernet:
    """Encrypt with ``current``; decrypt with ``current`` or any retired secret."""
    return MultiFernet([fernet_for(current), *(fernet_for(secret) for secret in previous)])


class EncryptedString(TypeDecorator):
    """Customer contact details stored as Fernet tokens.

    Rotating ``SECRET_KEY`` keeps old rows readable as long as the retired value
    is listed in ``PREVIOUS_SECRET_KEYS``.
    """

    impl = LargeBinary
    cache_ok = True

    def __init__(self, *, secret: Optional[str] = None, previous: tuple[str, ...] = (), **kwargs):
        super().__init__(**kwargs)
        self._secret = secret
        self._previous = previous

    def _cipher(self) -> MultiFernet:
        if self._secret is not None:
            return build_cipher(self._secret, self._previous)
        return build_cipher(settings.secret_key, settings.previous_secret_keys)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self._cipher().encrypt(str(value).encode("utf-8"))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return self._cipher().decrypt(bytes(value)).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Stored value cannot be decrypted with the configured keys") from exc


__all__ = ["EncryptedString", "build_cipher", "fernet_for"]
