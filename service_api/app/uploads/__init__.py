from .service import UploadService

__all__ = ["UploadService"]
