"""HTTP client for the booking and audit API."""

import logging
from typing import Optional

import httpx

from ..config import settings
from .models import AuditRecordError, BookingCommitError, CommitError, UploadRecordError

logger = logging.getLogger(__name__)


class BookingApiClient:
    """
    Async client for the upload-record, booking and field-change endpoints.

    Every response is a ``{status, data, message}`` envelope; a transport
    error, a non-2xx status or ``status == "failed"`` raises the error type
    of the calling operation.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.booking_api_url).rstrip("/")
        self.token = token if token is not None else settings.booking_api_token
        self.timeout = timeout or settings.booking_api_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def __aenter__(self) -> "BookingApiClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def open(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, error_cls: type[CommitError], **kwargs) -> dict:
        await self.open()
        try:
            response = await self._client.post(path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise error_cls(
                f"POST {path} failed with status {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise error_cls(f"POST {path} failed: {e}") from e
        except ValueError as e:
            raise error_cls(f"POST {path} returned invalid JSON") from e

        if not isinstance(body, dict) or body.get("status") == "failed":
            message = body.get("message") if isinstance(body, dict) else None
            raise error_cls(f"POST {path} rejected: {message or 'unknown error'}")
        return body.get("data") or {}

    async def create_upload_record(
        self,
        file_name: str,
        content: bytes,
        user_id: str,
        property_id: str = "",
    ) -> str:
        """Register the source file and return the upload record ID."""
        data = await self._post(
            "/csv-uploads",
            UploadRecordError,
            files={"csvFile": (file_name, content, "text/csv")},
            data={"user_id": user_id, "property_id": property_id},
        )
        upload_id = data.get("id")
        if not upload_id:
            raise UploadRecordError("Upload record response did not include an id")
        logger.info(f"Created upload record {upload_id} for {file_name}")
        return str(upload_id)

    async def create_bookings_bulk(self, bookings: list[dict]) -> list[dict]:
        """Create bookings in one call and return the created records."""
        data = await self._post(
            "/bookings/bulk", BookingCommitError, json={"bookings": bookings}
        )
        created = data.get("bookings") or []
        logger.info(f"Booking API created {len(created)} of {len(bookings)} bookings")
        return created

    async def create_field_changes_bulk(self, field_changes: list[dict]) -> int:
        """Create audit records for edited fields and return how many were stored."""
        data = await self._post(
            "/field-values-changed/bulk",
            AuditRecordError,
            json={"fieldChanges": field_changes},
        )
        count = data.get("count")
        return int(count) if count is not None else len(data.get("changes") or [])
