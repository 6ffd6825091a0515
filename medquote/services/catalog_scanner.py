"""
Catalog page scanning through an OpenAI-compatible chat completions endpoint.

The model returns product candidates as JSON. Candidates are checked against
the catalog (category must resolve by name, the normalised name must be new)
and handed back as previews; nothing is written here. Admins submit the
accepted rows through bulk product creation.
"""

import json
import logging
import re
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    RetryError,
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from medquote.config import settings
from medquote.errors import external_service_error, not_implemented
from medquote.models.user import User
from medquote.services.catalog_service import (
    _existing_normalized_names,
    find_category_by_name,
    normalize_name,
)
from medquote.services.guards import check_role
from medquote.services.http_client import get_http_client

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)

SCAN_TIMEOUT_SECONDS = 60.0

SCAN_PROMPT = """You are a medical equipment catalog scanner. Analyze this catalog page and extract ALL products visible.

For each product, provide:
- name: Full product name
- description: Detailed description (2-3 sentences)
- category: Medical equipment category (e.g., "Diagnostic Equipment", "Laboratory Equipment", "Surgical Instruments")
- specifications: Technical specifications and features
- price: Price if visible (number only, no currency)
- sku: Product code/SKU if visible
- brand: Brand/manufacturer if visible

Return ONLY a valid JSON object with this structure:
{"products": [{"name": "...", "description": "...", "category": "...", "specifications": "...", "price": 0, "sku": "...", "brand": "..."}]}

Extract ALL products you can see. If a product doesn't have all fields, omit the missing ones."""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ScannedProduct(BaseModel):
    name: str
    description: str = ""
    category: str = ""
    specifications: Optional[str] = None
    price: Optional[float] = None
    sku: Optional[str] = None
    brand: Optional[str] = None


class AcceptedCandidate(BaseModel):
    product: ScannedProduct
    category_id: str


class RejectedCandidate(BaseModel):
    product: ScannedProduct
    reason: str


class ScanResult(BaseModel):
    accepted: list[AcceptedCandidate] = []
    rejected: list[RejectedCandidate] = []


class _ScannerRetryableError(Exception):
    """5xx or network failure talking to the scanner endpoint."""


def is_configured() -> bool:
    return bool(settings.CATALOG_SCANNER_API_KEY)


@retry(
    retry=retry_if_exception_type(_ScannerRetryableError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    before_sleep=before_sleep_log(_std_logger, logging.WARNING),
)
async def _request_completion(image_url: str, context: Optional[str]) -> str:
    prompt = SCAN_PROMPT if not context else f"{SCAN_PROMPT}\n\nAdditional context: {context}"
    client = get_http_client()
    try:
        response = await client.post(
            settings.CATALOG_SCANNER_URL,
            headers={"Authorization": f"Bearer {settings.CATALOG_SCANNER_API_KEY}"},
            json={
                "model": settings.CATALOG_SCANNER_MODEL,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                        ],
                    }
                ],
                "max_tokens": 4096,
                "temperature": 0.2,
            },
            timeout=SCAN_TIMEOUT_SECONDS,
        )
    except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
        logger.warning("catalog_scan_network_error_retrying", error=str(exc))
        raise _ScannerRetryableError(str(exc)) from exc

    if response.status_code >= 500:
        logger.warning("catalog_scan_5xx_retrying", status_code=response.status_code)
        raise _ScannerRetryableError(f"Scanner returned {response.status_code}")
    if response.status_code != 200:
        logger.error(
            "catalog_scan_rejected",
            status_code=response.status_code,
            response=response.text[:500],
        )
        raise external_service_error(f"Catalog scanner returned {response.status_code}")

    try:
        content = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise external_service_error("No response from catalog scanner") from exc
    if not content:
        raise external_service_error("No response from catalog scanner")
    return content


def parse_candidates(content: str) -> list[ScannedProduct]:
    """Pull the products array out of the model's reply."""
    match = _JSON_OBJECT.search(content)
    if not match:
        raise external_service_error(
            "Could not parse scanner response. The image may not contain clear product information."
        )
    try:
        payload = json.loads(match.group(0))
        return [ScannedProduct.model_validate(p) for p in payload.get("products", [])]
    except (ValueError, AttributeError, ValidationError) as exc:
        raise external_service_error("Could not parse scanner response") from exc


async def validate_candidates(
    session: AsyncSession, candidates: list[ScannedProduct]
) -> ScanResult:
    result = ScanResult()
    existing = await _existing_normalized_names(
        session, {normalize_name(c.name) for c in candidates}
    )
    seen: set[str] = set()
    for candidate in candidates:
        norm = normalize_name(candidate.name)
        if not norm:
            result.rejected.append(RejectedCandidate(product=candidate, reason="Missing name"))
            continue
        if norm in existing:
            result.rejected.append(
                RejectedCandidate(product=candidate, reason="Product already exists")
            )
            continue
        if norm in seen:
            result.rejected.append(
                RejectedCandidate(product=candidate, reason="Duplicate on this page")
            )
            continue
        category = (
            await find_category_by_name(session, candidate.category)
            if candidate.category
            else None
        )
        if category is None:
            result.rejected.append(
                RejectedCandidate(
                    product=candidate, reason=f"Unknown category '{candidate.category}'"
                )
            )
            continue
        seen.add(norm)
        result.accepted.append(AcceptedCandidate(product=candidate, category_id=str(category.id)))
    return result


async def scan_catalog_image(
    session: AsyncSession, image_url: str, admin: User, context: Optional[str] = None
) -> ScanResult:
    check_role(admin, "admin", message="Only admins can scan catalogs")
    if not is_configured():
        raise not_implemented("Catalog scanning is not configured")

    try:
        content = await _request_completion(image_url, context)
    except RetryError as exc:
        logger.error("catalog_scan_retries_exhausted", error=str(exc))
        raise external_service_error("Failed to scan catalog") from exc

    candidates = parse_candidates(content)
    result = await validate_candidates(session, candidates)
    logger.info(
        "catalog_scanned",
        candidates=len(candidates),
        accepted=len(result.accepted),
        rejected=len(result.rejected),
    )
    return result
