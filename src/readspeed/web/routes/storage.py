"""Serves uploaded files from local object storage."""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from readspeed.core import storage

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
async def get_object(bucket: str, path: str) -> FileResponse:
    target = storage.resolve_object(bucket, path)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(target)
