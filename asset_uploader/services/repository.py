"""
Listing Image Repository - Single Responsibility: record image URLs on a listing.

Implements Repository Pattern over the marketplace API.
"""
from typing import Any, Dict

from ..protocols import IAPIClient


class ListingImageRepository:
    """
    Creates image records through the marketplace ``/images`` endpoint.

    Implements ImageRecordRepository protocol.
    """

    def __init__(self, api_client: IAPIClient, endpoint: str = "/images"):
        """
        Args:
            api_client: HTTP client for API calls
            endpoint: Image collection endpoint
        """
        self._api = api_client
        self._endpoint = endpoint

    async def create_image(self, listing_id: int, url: str) -> Dict[str, Any]:
        """
        Create one image record pointing at url.

        Returns:
            The created record as returned by the API
        """
        response = await self._api.post(self._endpoint, json={
            "url": url,
            "immobileId": listing_id,
        })
        return response.json()
