"""
Source Document Service

Refresh-mode IO shell: finds a CSP event's source documents, downloads their
CSV text from the document store and parses it into raw rows.

Lookup:
- documents(csp_event_id, document_type, file_path, created_at) in Postgres
- Only transaction_detail and low_cost_opportunity documents are used
- The newest document of each type wins

Download:
- GET {storage_base_url}/{file_path} with an optional bearer key
- Both documents are fetched concurrently; the fold downstream is commutative
- A failed download is logged and treated as an empty document, so the
  InputError check decides whether the refresh can proceed
"""

from typing import Dict, List, Optional, Tuple
import asyncio
import logging

import httpx

from csp_strategy.core.config import Settings
from csp_strategy.core.database import execute_query
from csp_strategy.core.exceptions import DocumentNotFoundError, StrategyEngineError
from csp_strategy.models import DocumentType
from csp_strategy.services.csv_parser import parse_csv_text

logger = logging.getLogger(__name__)

RawRows = List[Dict[str, str]]


async def fetch_event_documents(event_id: str) -> Dict[DocumentType, str]:
    """
    Find the newest file path of each source document type for an event.

    Returns:
        Mapping of DocumentType → file_path. Missing types are absent.
    """
    rows = await execute_query(
        """
        SELECT DISTINCT ON (document_type) document_type, file_path
        FROM documents
        WHERE csp_event_id = $1
          AND document_type = ANY($2::text[])
          AND file_path IS NOT NULL
        ORDER BY document_type, created_at DESC
        """,
        event_id,
        [doc_type.value for doc_type in DocumentType],
    )
    return {DocumentType(row['document_type']): row['file_path'] for row in rows}


def build_document_url(base_url: str, file_path: str) -> str:
    """Join the storage base URL and a stored file path."""
    return f"{base_url.rstrip('/')}/{file_path.lstrip('/')}"


async def download_document_text(
    client: httpx.AsyncClient,
    url: str,
    api_key: Optional[str] = None,
) -> str:
    """
    Download one document as text.

    Raises:
        httpx.HTTPError: On transport failure or a non-2xx response.
    """
    headers = {'Authorization': f"Bearer {api_key}"} if api_key else {}
    response = await client.get(url, headers=headers)
    response.raise_for_status()
    return response.text


async def _download_rows(
    client: httpx.AsyncClient,
    settings: Settings,
    doc_type: DocumentType,
    file_path: Optional[str],
) -> RawRows:
    if not file_path:
        return []

    url = build_document_url(settings.storage_base_url, file_path)
    try:
        text = await download_document_text(client, url, settings.storage_api_key)
    except httpx.HTTPError as e:
        logger.warning(f"Failed to download {doc_type.value} document {file_path}: {e}")
        return []

    rows = parse_csv_text(text)
    logger.info(f"Parsed {len(rows)} rows from {doc_type.value} document {file_path}")
    return rows


async def load_event_rows(
    event_id: str,
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Tuple[RawRows, RawRows]:
    """
    Re-fetch and parse both source documents of a CSP event.

    Args:
        event_id: CSP event identifier
        settings: Supplies the storage URL, key and timeout
        http_client: Optional client to reuse; one is created when omitted

    Returns:
        (transaction rows, opportunity rows)

    Raises:
        DocumentNotFoundError: The event has no source documents.
        StrategyEngineError: The document store is not configured.
    """
    documents = await fetch_event_documents(event_id)
    if not documents:
        raise DocumentNotFoundError(f"No source documents found for CSP event {event_id}")

    if not settings.storage_base_url:
        raise StrategyEngineError("STORAGE_BASE_URL is not configured; cannot refresh from documents")

    txn_path = documents.get(DocumentType.TRANSACTION_DETAIL)
    lo_path = documents.get(DocumentType.LOW_COST_OPPORTUNITY)

    if http_client is not None:
        return await _download_all(http_client, settings, txn_path, lo_path)

    async with httpx.AsyncClient(timeout=settings.document_fetch_timeout_seconds) as client:
        return await _download_all(client, settings, txn_path, lo_path)


async def _download_all(
    client: httpx.AsyncClient,
    settings: Settings,
    txn_path: Optional[str],
    lo_path: Optional[str],
) -> Tuple[RawRows, RawRows]:
    txn_rows, lo_rows = await asyncio.gather(
        _download_rows(client, settings, DocumentType.TRANSACTION_DETAIL, txn_path),
        _download_rows(client, settings, DocumentType.LOW_COST_OPPORTUNITY, lo_path),
    )
    return txn_rows, lo_rows


__all__ = [
    'fetch_event_documents',
    'build_document_url',
    'download_document_text',
    'load_event_rows',
]
