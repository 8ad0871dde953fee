from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from modules.orders.errors import ArtifactNotFound, InvalidArtifactKey
from modules.storage.dependencies import get_artifact_store
from modules.storage.services.artifact_store import LocalArtifactStore

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{key:path}")
def download_artifact(bucket: str, key: str, store: LocalArtifactStore = Depends(get_artifact_store)):
    """URL pública de un artefacto almacenado"""
    if bucket != store.bucket:
        raise HTTPException(404, "Bucket no encontrado")
    try:
        path, meta = store.open_artifact(key)
    except (ArtifactNotFound, InvalidArtifactKey) as e:
        raise HTTPException(404, str(e))

    headers = {}
    if meta.get("cache_control"):
        headers["Cache-Control"] = f"max-age={meta['cache_control']}"
    return FileResponse(path, media_type=meta["content_type"], headers=headers)
