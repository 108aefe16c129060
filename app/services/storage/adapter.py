import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path, PurePosixPath
from urllib.parse import urlencode

LOCAL_CONTENT_PATH = "/api/v1/files/content"


def _sign_local_url(secret_key: str, object_key: str, expires: int) -> str:
    return hmac.new(
        secret_key.encode("utf-8"),
        f"{object_key}\n{expires}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_local_url_signature(
    secret_key: str, object_key: str, expires: int, signature: str
) -> bool:
    """True only for an unexpired link signed with ``secret_key`` for ``object_key``."""
    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_sign_local_url(secret_key, object_key, expires), signature)


class StorageAdapter(ABC):
    """Object storage for uploaded supporting documents and report artifacts.

    Keys are POSIX-style relative paths (``uploads/<user>/<file>``,
    ``reports/...``). Missing objects raise ``FileNotFoundError``; malformed
    keys raise ``ValueError``; everything else surfaces as ``OSError``.
    """

    provider: str = "local"

    @abstractmethod
    def generate_download_url(
        self, object_key: str, *, expires_in: int = 900, filename: str | None = None
    ) -> str: ...

    @abstractmethod
    def read_bytes(self, object_key: str) -> bytes: ...

    @abstractmethod
    def write_bytes(
        self, object_key: str, content: bytes, content_type: str | None = None
    ) -> None: ...

    @abstractmethod
    def object_exists(self, object_key: str) -> bool: ...


class LocalFileSystemAdapter(StorageAdapter):
    def __init__(self, base_path: str, base_url: str, *, signing_key: str):
        self.provider = "local"
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key
        self.base_path.mkdir(parents=True, exist_ok=True)

    def resolve_path(self, object_key: str) -> Path:
        key_path = PurePosixPath(object_key)
        if "\\" in object_key or key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / key_path).resolve()
        if base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def generate_download_url(
        self, object_key: str, *, expires_in: int = 900, filename: str | None = None
    ) -> str:
        self.resolve_path(object_key)
        expires = int(time.time()) + expires_in
        params = {
            "key": object_key,
            "expires": expires,
            "signature": _sign_local_url(self.signing_key, object_key, expires),
        }
        if filename:
            params["name"] = filename
        return f"{self.base_url}{LOCAL_CONTENT_PATH}?{urlencode(params)}"

    def read_bytes(self, object_key: str) -> bytes:
        path = self.resolve_path(object_key)
        if not path.is_file():
            raise FileNotFoundError(object_key)
        return path.read_bytes()

    def write_bytes(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        path = self.resolve_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def object_exists(self, object_key: str) -> bool:
        try:
            return self.resolve_path(object_key).is_file()
        except ValueError:
            return False


class GCSStorageAdapter(StorageAdapter):
    def __init__(self, bucket: str):
        # google-cloud-storage is an optional extra; only imported when configured
        import google.auth
        import google.auth.transport.requests
        from google.cloud import storage

        self.provider = "gcs"
        self.credentials, _ = google.auth.default()
        self._auth_request = google.auth.transport.requests.Request()
        self._bucket = storage.Client(credentials=self.credentials).bucket(bucket)

    def _signing_kwargs(self) -> dict:
        if hasattr(self.credentials, "sign_bytes"):
            return {"credentials": self.credentials}
        # Workload identity: sign through IAM with a fresh access token.
        if not self.credentials.valid or not self.credentials.token:
            self.credentials.refresh(self._auth_request)
        email = getattr(self.credentials, "service_account_email", None)
        if not email:
            raise OSError("GCS signed URLs need a service account identity")
        return {"service_account_email": email, "access_token": self.credentials.token}

    def generate_download_url(
        self, object_key: str, *, expires_in: int = 900, filename: str | None = None
    ) -> str:
        extra = {}
        if filename:
            extra["response_disposition"] = f'attachment; filename="{filename}"'
        return self._bucket.blob(object_key).generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expires_in),
            method="GET",
            **extra,
            **self._signing_kwargs(),
        )

    def read_bytes(self, object_key: str) -> bytes:
        from google.api_core.exceptions import NotFound as BlobNotFound

        try:
            return self._bucket.blob(object_key).download_as_bytes()
        except BlobNotFound as exc:
            raise FileNotFoundError(object_key) from exc

    def write_bytes(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        self._bucket.blob(object_key).upload_from_string(
            content, content_type=content_type or "application/octet-stream"
        )

    def object_exists(self, object_key: str) -> bool:
        return self._bucket.blob(object_key).exists()
