from app.core.settings import settings
from app.services.storage.adapter import GCSStorageAdapter, LocalFileSystemAdapter, StorageAdapter


def get_storage_adapter() -> StorageAdapter:
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket:
            raise ValueError("STORAGE_PROVIDER=gcs requires GCS_BUCKET")
        return GCSStorageAdapter(bucket=settings.gcs_bucket)
    return LocalFileSystemAdapter(
        base_path=settings.local_upload_dir,
        base_url=settings.public_base_url,
        signing_key=settings.secret_key,
    )
