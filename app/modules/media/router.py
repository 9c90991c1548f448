from fastapi import APIRouter, Depends

from app.core.storage import r2_storage
from app.modules.media.service import MediaService

router = APIRouter()

def get_media_service() -> MediaService:
    return MediaService(r2_storage)

@router.get("/{path:path}")
def serve_media(path: str, media_service: MediaService = Depends(get_media_service)):
    return media_service.get_media(path)
