"""
Supabase Storage service for file uploads.
"""

import logging
from typing import Optional

from database.connection import get_db

logger = logging.getLogger(__name__)


class StorageService:
    """Service for managing file uploads to Supabase Storage."""

    @property
    def supabase(self):
        # Resolved per call: the Supabase client is thread-local
        return get_db()

    def upload_file(
        self,
        bucket: str,
        path: str,
        file_data: bytes,
        content_type: str = "image/png",
    ) -> str:
        """
        Upload a file to Supabase Storage.

        Args:
            bucket: The storage bucket name
            path: The file path within the bucket (e.g., "{account_id}/images/logo.png")
            file_data: The file content as bytes
            content_type: The MIME type of the file

        Returns:
            The public URL of the uploaded file
        """
        self.supabase.storage.from_(bucket).upload(
            path=path,
            file=file_data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        return self.get_public_url(bucket, path)

    def delete_file(self, bucket: str, path: str) -> bool:
        """Delete a file from Supabase Storage. Returns True on success."""
        return self.delete_files(bucket, [path])

    def delete_files(self, bucket: str, paths: list[str]) -> bool:
        if not paths:
            return True
        try:
            self.supabase.storage.from_(bucket).remove(paths)
            return True
        except Exception as e:
            logger.warning(f"Failed to delete {len(paths)} file(s) from {bucket}: {e}")
            return False

    def get_public_url(self, bucket: str, path: str) -> str:
        """Get the public URL for a file in Supabase Storage."""
        return self.supabase.storage.from_(bucket).get_public_url(path)

    def download_file(self, bucket: str, path: str) -> bytes | None:
        """
        Download a file from Supabase Storage.

        Returns:
            The file content as bytes, or None if download failed
        """
        try:
            return self.supabase.storage.from_(bucket).download(path)
        except Exception as e:
            logger.debug(f"Download of {bucket}/{path} failed: {e}")
            return None

    def delete_folder(self, bucket: str, folder: str) -> bool:
        """Delete every file directly under `folder`."""
        try:
            files = self.supabase.storage.from_(bucket).list(folder)
        except Exception as e:
            logger.warning(f"Failed to list {bucket}/{folder}: {e}")
            return False
        paths = [f"{folder}/{f['name']}" for f in files or []]
        return self.delete_files(bucket, paths)


# Singleton instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get or create the storage service singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
