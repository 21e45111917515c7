"""Google Drive remote storage client."""

import asyncio
import hashlib
import json
import mimetypes
import os
from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from .base import (
    BaseRemoteClient,
    RemoteNode,
    NodeType,
    TransferResult,
    AuthenticationError,
    RemoteConnectionError,
    RateLimitError
)
from ..utils.logging import log_async_execution_time


FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
NODE_FIELDS = "id, name, mimeType, parents, md5Checksum, size"

# Read chunk for local fingerprinting
_HASH_CHUNK_SIZE = 1024 * 1024


def build_fingerprint(md5_hex: str, size: int) -> str:
    """Fingerprint format shared by local files and Drive nodes."""
    return f"{md5_hex.lower()}:{size}"


class GoogleDriveClient(BaseRemoteClient):
    """Google Drive client for camera uploads.

    The credential token is the authorized-user JSON document produced by an
    interactive OAuth login (``client_id``, ``client_secret``,
    ``refresh_token`` and optionally ``token``).
    """

    SCOPES = ["https://www.googleapis.com/auth/drive"]

    def __init__(self, application_name: str = "Camera Uploader", page_size: int = 1000, **kwargs):
        super().__init__(**kwargs)
        self.application_name = application_name
        self.page_size = min(page_size, 1000)
        self.service = None
        self.credentials: Optional[Credentials] = None
        self.api_version = "v3"

    @log_async_execution_time
    async def authenticate(self, token: str) -> bool:
        """Authenticate with an authorized-user token and verify it with ``about.get``."""
        try:
            info = json.loads(token)
        except (TypeError, json.JSONDecodeError) as e:
            raise AuthenticationError(f"Credential token is not valid JSON: {e}") from e

        try:
            self.credentials = Credentials.from_authorized_user_info(info, scopes=self.SCOPES)

            if not self.credentials.valid:
                if not self.credentials.refresh_token:
                    raise AuthenticationError("Credential token has expired and cannot be refreshed")
                await self._run(self.credentials.refresh, Request())

            self.service = build(
                "drive",
                self.api_version,
                credentials=self.credentials,
                cache_discovery=False
            )

            about = await self._execute(self.service.about().get(fields="user"))

        except AuthenticationError:
            raise
        except (ValueError, RefreshError, GoogleAuthError) as e:
            self.logger.error("Google Drive authentication failed", error=str(e))
            raise AuthenticationError(f"Credential token rejected: {e}") from e
        except HttpError as e:
            self.logger.error("Google Drive authentication failed", status=e.resp.status, error=str(e))
            if e.resp.status in (401, 403):
                raise AuthenticationError(f"Credential token rejected: {e}") from e
            raise self._translate_http_error(e, "authenticate") from e

        self._authenticated = True
        self.logger.info(
            "Google Drive authentication successful",
            user_email=about.get("user", {}).get("emailAddress", "Unknown")
        )
        return True

    @log_async_execution_time
    async def fetch_nodes(self) -> RemoteNode:
        """Load every non-trashed file and folder of the account into the tree."""
        self._require_authenticated()
        self.tree.clear()

        try:
            root_data = await self._execute(
                self.service.files().get(fileId="root", fields="id, name")
            )
            root = RemoteNode(
                node_id=root_data["id"],
                name=root_data.get("name", "My Drive"),
                node_type=NodeType.FOLDER
            )
            self.tree.set_root(root)

            page_token = None
            while True:
                result = await self._execute(
                    self.service.files().list(
                        q="trashed=false",
                        spaces="drive",
                        fields=f"nextPageToken, files({NODE_FIELDS})",
                        pageSize=self.page_size,
                        pageToken=page_token
                    )
                )

                for file_data in result.get("files", []):
                    self.tree.add(self._convert_to_node(file_data))

                page_token = result.get("nextPageToken")
                if not page_token:
                    break

        except HttpError as e:
            raise self._translate_http_error(e, "fetch_nodes") from e

        self.logger.info("Fetched remote tree", nodes=len(self.tree), root_id=root.node_id)
        return root

    async def create_folder(self, name: str, parent: RemoteNode) -> Optional[RemoteNode]:
        self._require_authenticated()

        try:
            folder_data = await self._execute(
                self.service.files().create(
                    body={
                        "name": name,
                        "mimeType": FOLDER_MIME_TYPE,
                        "parents": [parent.node_id]
                    },
                    fields=NODE_FIELDS
                )
            )
        except HttpError as e:
            raise self._translate_http_error(e, "create_folder") from e

        folder = self._convert_to_node(folder_data)
        self.tree.add(folder)

        self.logger.info("Created folder", name=name, node_id=folder.node_id, parent_id=parent.node_id)
        return folder

    def get_file_fingerprint(self, local_path: str) -> str:
        digest = hashlib.md5()
        with open(local_path, "rb") as f:
            for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
        return build_fingerprint(digest.hexdigest(), os.path.getsize(local_path))

    async def upload_file(self, local_path: str, parent: RemoteNode) -> TransferResult:
        self._require_authenticated()

        file_name = os.path.basename(local_path)
        mime_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"

        try:
            media = MediaFileUpload(local_path, mimetype=mime_type, resumable=True)
            file_data = await self._execute(
                self.service.files().create(
                    body={"name": file_name, "parents": [parent.node_id]},
                    media_body=media,
                    fields=NODE_FIELDS
                )
            )
        except HttpError as e:
            self.logger.error(
                "Upload failed",
                file_name=file_name,
                status=e.resp.status,
                error=str(e)
            )
            return TransferResult(success=False, error_message=f"Google Drive API error: {e}")
        except (OSError, GoogleAuthError) as e:
            self.logger.error("Upload failed", file_name=file_name, error=str(e))
            return TransferResult(success=False, error_message=str(e))

        node = self._convert_to_node(file_data)
        self.tree.add(node)

        self.logger.info("Upload finished", file_name=file_name, node_id=node.node_id)
        return TransferResult(success=True, node=node)

    async def close(self):
        if self.service is not None:
            self.service.close()
            self.service = None
        self.credentials = None
        await super().close()

    def _convert_to_node(self, file_data: Dict[str, Any]) -> RemoteNode:
        """Convert Drive file data to a RemoteNode."""
        parents = file_data.get("parents") or []
        is_folder = file_data.get("mimeType") == FOLDER_MIME_TYPE

        size = None
        if "size" in file_data:
            try:
                size = int(file_data["size"])
            except (ValueError, TypeError):
                pass

        fingerprint = None
        md5 = file_data.get("md5Checksum")
        if not is_folder and md5 and size is not None:
            fingerprint = build_fingerprint(md5, size)

        return RemoteNode(
            node_id=file_data["id"],
            name=file_data.get("name", ""),
            node_type=NodeType.FOLDER if is_folder else NodeType.FILE,
            parent_id=parents[0] if parents else None,
            fingerprint=fingerprint,
            size=size
        )

    def _translate_http_error(self, error: HttpError, operation: str) -> Exception:
        status = error.resp.status
        if status == 429:
            retry_after = int(error.resp.get("retry-after", 60))
            return RateLimitError(f"Google Drive rate limit exceeded during {operation}", retry_after)
        if status in (401, 403):
            return AuthenticationError(f"Google Drive refused {operation}: {error}")
        return RemoteConnectionError(f"Google Drive API error during {operation}: {error}")

    def _require_authenticated(self):
        if not self._authenticated or self.service is None:
            raise AuthenticationError("Google Drive client is not authenticated")

    async def _execute(self, request):
        """Execute a Google API request in the default executor."""
        return await self._run(request.execute)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)
