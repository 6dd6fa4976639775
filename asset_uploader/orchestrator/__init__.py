"""Orchestrator package - batch fan-out and single file upload."""
from .core import BatchUploadOrchestrator
from .single_upload import SingleUploadHandler, UploadRun

__all__ = ["BatchUploadOrchestrator", "SingleUploadHandler", "UploadRun"]
