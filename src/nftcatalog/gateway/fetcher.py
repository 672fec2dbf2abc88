"""Metadata fetcher - GET a gateway URL, validate, decode into MetadataRecord."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nftcatalog.errors import ContentTypeError, DecodeError, FetchError, HttpError
from nftcatalog.gateway.resolver import GatewayResolver
from nftcatalog.models import MetadataRecord
from nftcatalog.retry import is_retryable_fetch_error, with_retries

log = structlog.get_logger(__name__)

# Error pages can be large; keep enough of the body to diagnose them.
_MAX_BODY_CHARS = 2000


class _RawMetadata(BaseModel):
    """Wire shape of a token metadata document (ERC-721 style). Only ``image`` is required."""

    model_config = ConfigDict(extra="allow")

    image: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    attributes: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> str | None:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("attributes", mode="before")
    @classmethod
    def _attribute_list(cls, value: Any) -> list[dict[str, Any]]:
        if not isinstance(value, list):
            return []
        # bare scalars ("rare") become {"value": ...}; anything else is dropped
        attrs: list[dict[str, Any]] = []
        for entry in value:
            if isinstance(entry, dict):
                attrs.append({str(k): v for k, v in entry.items()})
            elif isinstance(entry, (str, int, float, bool)):
                attrs.append({"value": entry})
        return attrs


@dataclass(frozen=True)
class FetchResult:
    """Either a record or the error that prevented it."""

    url: str
    record: MetadataRecord | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def _is_json_media_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _describe_errors(error: ValidationError) -> str:
    """'image: Field required; ...' built from the validation error locations."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<document>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_metadata(payload: Any, resolver: GatewayResolver) -> MetadataRecord:
    """Validate a decoded metadata document and rewrite its image reference through the gateway."""
    if not isinstance(payload, dict):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        raw = _RawMetadata.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(_describe_errors(e)) from e
    return MetadataRecord(
        image_url=resolver.resolve(raw.image),
        image_reference=raw.image,
        name=raw.name,
        description=raw.description,
        attributes=raw.attributes,
        extra=dict(raw.model_extra or {}),
    )


class MetadataFetcher:
    """Fetches token metadata documents over HTTP. Failures are returned, not raised, by fetch()."""

    def __init__(
        self,
        resolver: GatewayResolver | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_base_delay_sec: float = 0.5,
    ) -> None:
        self.resolver = resolver or GatewayResolver()
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None
        self.max_retries = max_retries
        self.retry_base_delay_sec = retry_base_delay_sec

    async def fetch(self, url: str) -> FetchResult:
        """Fetch and decode ``url``. Never raises FetchError; transport failures become FetchError too."""
        try:
            record = await self.fetch_or_raise(url)
        except FetchError as e:
            log.debug("metadata_fetch_failed", url=url, error=str(e))
            return FetchResult(url=url, error=e)
        return FetchResult(url=url, record=record)

    async def fetch_or_raise(self, url: str) -> MetadataRecord:
        try:
            return await with_retries(
                lambda: self._fetch_once(url),
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay_sec,
                retryable=is_retryable_fetch_error,
                what="metadata_fetch",
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"Request failed: {e}") from e

    async def _fetch_once(self, url: str) -> MetadataRecord:
        resp = await self._client.get(url)
        if not resp.is_success:
            raise HttpError(resp.status_code, url)
        content_type = resp.headers.get("content-type")
        if not _is_json_media_type(content_type):
            raise ContentTypeError(content_type, resp.text[:_MAX_BODY_CHARS])
        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"malformed JSON: {e}") from e
        return parse_metadata(payload, self.resolver)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> MetadataFetcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
