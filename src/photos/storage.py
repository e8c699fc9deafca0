import io
import logging
import os
import threading
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from config import Settings
from exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.file"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class StoredImage:
    url: str
    asset_id: str


class GoogleDriveStorage:
    """
    Image storage on Google Drive.

    Images are uploaded into one folder, shared read-only with anyone who
    has the link, and addressed by their Drive file id.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._folder_id: Optional[str] = None
        self._folder_lock = threading.Lock()

    def _credentials(self) -> Credentials:
        """
        Load the saved user credentials, refreshing them when expired.
        """
        token_file = self.settings.google_drive_token_file
        if not os.path.exists(token_file):
            raise UpstreamServiceError(
                "Google Drive is not authorized; run `cattery-manage authorize-drive`"
            )
        creds = Credentials.from_authorized_user_file(token_file, SCOPES)
        if creds.expired and creds.refresh_token:
            creds.refresh(GoogleRequest())
            with open(token_file, "w") as token:
                token.write(creds.to_json())
        return creds

    def _service(self):
        return build("drive", "v3", credentials=self._credentials(), cache_discovery=False)

    def _folder(self, drive_service) -> str:
        """
        Find the images folder in Google Drive, create it if necessary.

        Runs in threadpool workers; the lock keeps concurrent first uploads
        from creating the folder twice.
        """
        with self._folder_lock:
            if self._folder_id:
                return self._folder_id

            name = self.settings.google_drive_folder
            query = f"mimeType='{FOLDER_MIME_TYPE}' and name='{name}' and trashed=false"
            folder = (
                drive_service.files()
                .list(q=query, fields="files(id)")
                .execute()
                .get("files")
            )
            if folder:
                self._folder_id = folder[0].get("id")
            else:
                folder_metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE}
                folder = (
                    drive_service.files()
                    .create(body=folder_metadata, fields="id")
                    .execute()
                )
                self._folder_id = folder.get("id")
            return self._folder_id

    def _upload(self, data: bytes, filename: str, content_type: str) -> StoredImage:
        drive_service = self._service()
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=content_type, resumable=True)
        file_metadata = {"name": filename, "parents": [self._folder(drive_service)]}
        file = (
            drive_service.files()
            .create(body=file_metadata, media_body=media, fields="id")
            .execute()
        )
        file_id = file.get("id")

        # Public catalog: anyone with the link may view the image
        drive_service.permissions().create(
            fileId=file_id, body={"role": "reader", "type": "anyone"}
        ).execute()

        return StoredImage(url=f"https://drive.google.com/uc?id={file_id}", asset_id=file_id)

    def _delete(self, asset_id: str) -> None:
        self._service().files().delete(fileId=asset_id).execute()

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredImage:
        try:
            return await run_in_threadpool(self._upload, data, filename, content_type)
        except (HttpError, GoogleAuthError, OSError) as e:
            logger.error("Upload of %s to Google Drive failed: %s", filename, e)
            raise UpstreamServiceError("Failed to upload the image to Google Drive") from e

    async def delete(self, asset_id: str) -> None:
        try:
            await run_in_threadpool(self._delete, asset_id)
        except HttpError as e:
            if e.resp.status == 404:
                logger.info("Drive file %s was already gone", asset_id)
                return
            raise UpstreamServiceError(f"Failed to delete Drive file {asset_id}") from e
        except (GoogleAuthError, OSError) as e:
            raise UpstreamServiceError(f"Failed to delete Drive file {asset_id}") from e


def authorize(settings: Settings, port: int = 8080) -> str:
    """
    Run the OAuth consent flow once and save the user credentials.
    """
    flow = InstalledAppFlow.from_client_secrets_file(
        settings.google_client_secret_file, scopes=SCOPES
    )
    creds = flow.run_local_server(port=port)
    with open(settings.google_drive_token_file, "w") as token:
        token.write(creds.to_json())
    return settings.google_drive_token_file


def get_image_storage(request: Request):
    return request.app.state.image_storage
