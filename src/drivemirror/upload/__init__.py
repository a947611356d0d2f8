from .pipeline import DEFAULT_MIME_TYPE, UploadPipeline, UploadRequest

__all__ = ["DEFAULT_MIME_TYPE", "UploadPipeline", "UploadRequest"]
