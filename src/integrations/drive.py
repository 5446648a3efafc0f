"""Google Drive integration for storing exported proposals."""

import asyncio
import io
import logging
import os
from typing import Optional, Dict, Any

from src.core.config import get_settings

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]


class DriveStorage:
    """
    Service for Google Drive uploads.

    Uses a service account; files land in GOOGLE_DRIVE_FOLDER_ID when set.
    """

    def __init__(self):
        """Initialize service."""
        self._service = None
        self._settings = None

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def service(self):
        """Lazy initialize Google Drive service."""
        if self._service is None:
            self._service = self._build_service()
        return self._service

    def _build_service(self):
        """Build Google Drive service with service account."""
        try:
            from google.oauth2 import service_account
            from googleapiclient.discovery import build

            credentials_path = self.settings.GOOGLE_CREDENTIALS_PATH

            if not os.path.exists(credentials_path):
                logger.warning(f"Google credentials not found: {credentials_path}")
                return None

            credentials = service_account.Credentials.from_service_account_file(
                credentials_path,
                scopes=DRIVE_SCOPES
            )

            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
            logger.info("Google Drive service initialized")
            return service

        except Exception as e:
            logger.error(f"Failed to initialize Drive service: {e}")
            return None

    def is_available(self) -> bool:
        """Check if Drive service is available."""
        return self.service is not None

    def _upload(self, data: bytes, file_name: str, mime_type: str) -> Dict[str, Any]:
        from googleapiclient.http import MediaIoBaseUpload

        metadata: Dict[str, Any] = {"name": file_name}
        if self.settings.GOOGLE_DRIVE_FOLDER_ID:
            metadata["parents"] = [self.settings.GOOGLE_DRIVE_FOLDER_ID]

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        return self.service.files().create(
            body=metadata,
            media_body=media,
            fields="id, name, webViewLink, webContentLink",
            supportsAllDrives=True,
        ).execute()

    async def upload_file(
        self,
        data: bytes,
        file_name: str,
        mime_type: str
    ) -> Optional[Dict[str, Any]]:
        """
        Upload a file to Drive.

        Args:
            data: File content
            file_name: Name shown in Drive
            mime_type: Content type of the file

        Returns:
            Dict with file_id, name and web_view_link, or None on failure
        """
        if not self.is_available():
            logger.warning("Drive not available, skipping upload")
            return None

        try:
            created = await asyncio.to_thread(self._upload, data, file_name, mime_type)
            logger.info(f"Uploaded {file_name} to Drive: {created.get('id')}")
            return {
                "file_id": created.get("id"),
                "name": created.get("name"),
                "web_view_link": created.get("webViewLink"),
                "web_content_link": created.get("webContentLink"),
            }

        except Exception as e:
            logger.error(f"Failed to upload {file_name} to Drive: {e}")
            return None

    async def delete_file(self, file_id: str) -> bool:
        """Delete a Drive file. Returns True on success."""
        if not self.is_available():
            return False

        try:
            await asyncio.to_thread(
                lambda: self.service.files().delete(fileId=file_id, supportsAllDrives=True).execute()
            )
            logger.info(f"Deleted Drive file {file_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete Drive file {file_id}: {e}")
            return False


# Singleton instance
drive_storage = DriveStorage()
