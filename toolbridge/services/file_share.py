"""
Shared file storage

Files are written under SHARED_FILES_PATH/<organisation uuid>/ and handed out
through signed, expiring URLs served by the /files router.
"""
import asyncio
import base64
import binascii
import logging
import mimetypes
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from fastapi import Request

from ..core.config import settings

logger = logging.getLogger(__name__)

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class FileShareService:
    """Store uploaded bytes and sign download links"""

    def __init__(
        self,
        base_path: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        ttl: Optional[int] = None,
    ):
        self.base_path = Path(base_path or settings.SHARED_FILES_PATH)
        self._secret = (secret or settings.SECRET_KEY).encode()
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        self.ttl = ttl if ttl is not None else settings.SHARED_FILE_TTL

    async def share_file(
        self,
        binary_data: str,
        content_type: str,
        organisation_uuid: str,
        file_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not organisation_uuid or not _SAFE_SEGMENT.match(organisation_uuid):
            raise ValueError("A valid organisation is required to share files")

        try:
            content = base64.b64decode(binary_data, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("binaryData is not valid base64")

        extension = mimetypes.guess_extension(content_type or "") or ""
        if not extension and file_name and "." in file_name:
            extension = "." + file_name.rsplit(".", 1)[1].lower()
        file_id = f"{uuid.uuid4()}{extension}"

        await asyncio.to_thread(self._write, organisation_uuid, file_id, content)

        expires = int(time.time()) + self.ttl
        logger.info(f"Shared file {file_id} ({len(content)} bytes) for organisation {organisation_uuid}")

        return {
            "url": self.signed_url(organisation_uuid, file_id, expires),
            "file_id": file_id,
            "expires_at": datetime.fromtimestamp(expires, tz=timezone.utc).isoformat(),
            "size": len(content),
            "content_type": content_type,
        }

    def _write(self, organisation_uuid: str, file_id: str, content: bytes) -> None:
        directory = self.base_path / organisation_uuid
        directory.mkdir(parents=True, exist_ok=True)
        (directory / file_id).write_bytes(content)

    def _mac(self, organisation_uuid: str, file_id: str, expires: int) -> hmac.HMAC:
        mac = hmac.HMAC(self._secret, hashes.SHA256())
        mac.update(f"{organisation_uuid}/{file_id}:{expires}".encode())
        return mac

    def sign(self, organisation_uuid: str, file_id: str, expires: int) -> str:
        return self._mac(organisation_uuid, file_id, expires).finalize().hex()

    def signed_url(self, organisation_uuid: str, file_id: str, expires: int) -> str:
        signature = self.sign(organisation_uuid, file_id, expires)
        return f"{self.base_url}/files/{organisation_uuid}/{file_id}?expires={expires}&signature={signature}"

    def verify(self, organisation_uuid: str, file_id: str, expires: int, signature: str) -> bool:
        """Constant-time signature check plus expiry"""
        if expires < int(time.time()):
            return False
        try:
            self._mac(organisation_uuid, file_id, expires).verify(bytes.fromhex(signature))
        except (InvalidSignature, ValueError):
            return False
        return True

    def resolve(self, organisation_uuid: str, file_id: str) -> Optional[Path]:
        """Path of a stored file, or None when it is missing or the ids are unsafe"""
        if not _SAFE_SEGMENT.match(organisation_uuid or "") or not _SAFE_SEGMENT.match(file_id or ""):
            return None
        path = self.base_path / organisation_uuid / file_id
        return path if path.is_file() else None

    @staticmethod
    def guess_content_type(file_id: str) -> str:
        return mimetypes.guess_type(file_id)[0] or "application/octet-stream"


def get_file_share(request: Request) -> FileShareService:
    """FastAPI dependency: the store shared with system.share_file"""
    return request.app.state.file_share
