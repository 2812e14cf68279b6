"""HTTP client for the marketplace backend (file storage + second-hand listings)."""

import httpx
import structlog

from src.config import settings

logger = structlog.get_logger(__name__)

RETRIABLE_CODES = frozenset({"UPLOAD_TIMEOUT", "UPLOAD_FAILED", "NETWORK_ERROR"})
RETRIABLE_STATUS_CODES = frozenset({502, 503, 504})


class MarketplaceClientError(Exception):
    """
    A marketplace call failed.

    `server_message` is only set when the backend itself answered with a
    message; transport failures leave it as None.
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        retriable: bool = False,
        status_code: int | None = None,
        server_message: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.retriable = retriable
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(f"{code}: {message}")


class MarketplaceClient:
    """Thin HTTP wrapper around the marketplace REST API."""

    def __init__(
        self,
        base_url: str = settings.api_base_url,
        api_token: str | None = settings.api_token,
        *,
        timeout: float = settings.request_timeout_seconds,
        upload_field_name: str = settings.upload_field_name,
        upload_scene: str = settings.upload_scene,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._upload_field_name = upload_field_name
        self._upload_scene = upload_scene
        self._transport = transport
        self._headers: dict[str, str] = {}
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout, headers=self._headers, transport=self._transport
        )

    # -------------------------------------------------------------------------
    # File storage
    # -------------------------------------------------------------------------

    async def upload_file(
        self, filename: str, content: bytes, content_type: str = "application/octet-stream"
    ) -> dict:  # type: ignore[type-arg]
        """
        POST /file (multipart) → {"success": true, "data": {"id": ..., "filename": "..."}}
        """
        files = {self._upload_field_name: (filename, content, content_type)}
        data = {"scene": self._upload_scene}

        async with self._client() as client:
            try:
                response = await client.post(f"{self._base_url}/file", files=files, data=data)
            except httpx.TimeoutException as exc:
                logger.error("upload_timed_out", filename=filename, error=str(exc))
                raise MarketplaceClientError(
                    "UPLOAD_TIMEOUT", "The upload timed out.", retriable=True
                ) from exc
            except httpx.RequestError as exc:
                logger.error("upload_connection_failed", filename=filename, error=str(exc))
                raise MarketplaceClientError(
                    "NETWORK_ERROR", f"Failed to reach the marketplace: {exc}", retriable=True
                ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error("upload_response_unreadable", status_code=response.status_code)
            raise MarketplaceClientError(
                "INVALID_RESPONSE",
                "The upload service returned an unreadable response.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise MarketplaceClientError(
                "INVALID_RESPONSE",
                "The upload service returned an unexpected response.",
                status_code=response.status_code,
            )

        if response.is_success and body.get("success") is not False and body.get("data"):
            logger.info(
                "file_uploaded",
                filename=filename,
                request_id=body.get("requestId"),
                duration_ms=body.get("durationMs"),
            )
            return body

        code = body.get("errorCode") or f"HTTP_{response.status_code}"
        server_message = body.get("message")
        logger.error(
            "upload_rejected",
            filename=filename,
            status_code=response.status_code,
            code=code,
            request_id=body.get("requestId"),
        )
        raise MarketplaceClientError(
            code,
            server_message or "Upload failed, please try again later.",
            retriable=code in RETRIABLE_CODES or response.status_code in RETRIABLE_STATUS_CODES,
            status_code=response.status_code,
            server_message=server_message,
        )

    # -------------------------------------------------------------------------
    # Second-hand listings
    # -------------------------------------------------------------------------

    async def create_item(self, payload: dict) -> dict:  # type: ignore[type-arg]
        """POST /secondhand → the created SecondhandItem."""
        return await self._request_json("POST", "/secondhand", json=payload)

    async def update_user_item(
        self, user_id: str, item_id: int, payload: dict  # type: ignore[type-arg]
    ) -> dict:  # type: ignore[type-arg]
        """PUT /secondhand/user/{user_id} with the item id in the body."""
        return await self._request_json(
            "PUT", f"/secondhand/user/{user_id}", json={"itemId": item_id, **payload}
        )

    async def get_item(self, item_id: int) -> dict:  # type: ignore[type-arg]
        """GET /secondhand/{item_id}"""
        return await self._request_json("GET", f"/secondhand/{item_id}")

    async def _request_json(
        self, method: str, path: str, json: dict | None = None  # type: ignore[type-arg]
    ) -> dict:  # type: ignore[type-arg]
        async with self._client() as client:
            try:
                response = await client.request(method, f"{self._base_url}{path}", json=json)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                server_message = _message_from(exc.response)
                logger.error(
                    "marketplace_request_failed",
                    method=method,
                    path=path,
                    status_code=exc.response.status_code,
                    response=exc.response.text,
                )
                raise MarketplaceClientError(
                    f"HTTP_{exc.response.status_code}",
                    server_message or f"Marketplace returned {exc.response.status_code}",
                    retriable=exc.response.status_code in RETRIABLE_STATUS_CODES,
                    status_code=exc.response.status_code,
                    server_message=server_message,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("marketplace_connection_failed", method=method, path=path, error=str(exc))
                raise MarketplaceClientError(
                    "NETWORK_ERROR", f"Failed to reach the marketplace: {exc}", retriable=True
                ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise MarketplaceClientError(
                "INVALID_RESPONSE",
                "The marketplace returned an unreadable response.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise MarketplaceClientError(
                "INVALID_RESPONSE",
                "The marketplace returned an unexpected response.",
                status_code=response.status_code,
            )
        return data


def _message_from(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None
