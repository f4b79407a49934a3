"""
Shared File Download Endpoint
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from ..services.file_share import FileShareService, get_file_share

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/{org_uuid}/{file_id}")
async def download_shared_file(
    org_uuid: str,
    file_id: str,
    expires: int = Query(...),
    signature: str = Query(...),
    file_share: FileShareService = Depends(get_file_share),
):
    """Serve a file shared through system.share_file while its signed link is valid"""
    if not file_share.verify(org_uuid, file_id, expires, signature):
        logger.info(f"Rejected shared file request for {org_uuid}/{file_id}")
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    path = file_share.resolve(org_uuid, file_id)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path, media_type=file_share.guess_content_type(file_id), filename=file_id)
