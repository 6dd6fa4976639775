"""
Attach uploaded images to a listing.

Runs after a batch upload, on the caller's side of the pipeline: the
orchestrator only reports URLs, this decides what to do with them.
"""
import asyncio
import logging
from typing import Any, Dict, List, Union

from ..errors import InvalidListingIdError, NoValidUrlError
from ..models import BatchResult
from ..protocols import ImageRecordRepository

logger = logging.getLogger(__name__)


def parse_listing_id(listing_id: Union[int, str]) -> int:
    """
    Parse the listing identifier sent along with the files.

    Only whole integers are accepted; "3.0" and "3abc" are refused rather
    than truncated.
    """
    if isinstance(listing_id, bool):
        raise InvalidListingIdError(f"invalid listing id: {listing_id!r}")
    if isinstance(listing_id, int):
        return listing_id
    try:
        return int(str(listing_id).strip())
    except ValueError as exc:
        raise InvalidListingIdError(f"invalid listing id: {listing_id!r}") from exc


async def attach_uploaded_images(
    repository: ImageRecordRepository,
    listing_id: Union[int, str],
    result: BatchResult,
) -> List[Dict[str, Any]]:
    """
    Create one image record per successfully uploaded file.

    Failed files are skipped; the batch is refused only when no file
    produced a URL.

    Raises:
        NoValidUrlError: the batch produced no URL (checked first)
        InvalidListingIdError: listing_id is not an integer
    """
    urls = result.urls
    if not urls:
        raise NoValidUrlError("no valid URL provided for the images")
    listing = parse_listing_id(listing_id)

    if result.failed:
        logger.warning(f"Attaching {len(urls)} of {len(result)} image(s) to listing {listing}")

    records = await asyncio.gather(*(repository.create_image(listing, url) for url in urls))
    logger.info(f"Attached {len(records)} image(s) to listing {listing}")
    return list(records)
