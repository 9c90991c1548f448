import logging
import mimetypes

from fastapi import Response

from app.core.exceptions import NotFoundError
from app.core.storage import R2Storage

logger = logging.getLogger(__name__)

class MediaService:
    def __init__(self, r2_storage: R2Storage):
        self.r2_storage = r2_storage

    def get_media(self, path: str) -> Response:
        """Serve a stored image from the bucket or the local upload directory"""
        try:
            content = self.r2_storage.get_file(path)
        except ValueError:
            content = None
        if content is None:
            logger.warning(f"Media file {path} not found")
            raise NotFoundError("File not found")

        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return Response(
            content=content,
            media_type=content_type,
            headers={
                "Cache-Control": "public, max-age=86400",
                "Content-Disposition": f"inline; filename={path.split('/')[-1]}",
            },
        )
