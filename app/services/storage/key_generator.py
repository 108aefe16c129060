from datetime import date
from pathlib import Path
from uuid import UUID, uuid4
import re

UPLOADS_PREFIX = "uploads"
REPORT_INPUTS_PREFIX = "reports/inputs"


class KeyGenerator:
    @staticmethod
    def _safe_filename(filename: str) -> str:
        # Simple sanitization
        s = re.sub(r"[^a-zA-Z0-9_.-]", "_", filename)
        return s

    @staticmethod
    def upload_key(user_id: UUID, filename: str) -> str:
        ext = Path(KeyGenerator._safe_filename(filename)).suffix.lower()
        return f"{UPLOADS_PREFIX}/{user_id}/{uuid4().hex}{ext}"

    @staticmethod
    def report_input_key(as_of: date, filename: str) -> str:
        safe_filename = KeyGenerator._safe_filename(filename)
        return f"{REPORT_INPUTS_PREFIX}/{as_of.isoformat()}/{safe_filename}"

    @staticmethod
    def is_owned_upload(user_id: UUID, object_key: str) -> bool:
        return object_key.startswith(f"{UPLOADS_PREFIX}/{user_id}/")
