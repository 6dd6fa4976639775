"""Caller-side use cases built on top of the upload pipeline."""
from .attach_images import attach_uploaded_images, parse_listing_id

__all__ = ["attach_uploaded_images", "parse_listing_id"]
