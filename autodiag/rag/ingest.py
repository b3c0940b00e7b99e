"""Ingestion CLI script.

Reads service bulletins from a JSON file, embeds each one, and upserts it
into Weaviate with idempotency (SHA-256 checksum deduplication).

Usage:
    python -m autodiag.rag.ingest
    python -m autodiag.rag.ingest --file bulletins.json --force-recreate
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

import structlog

from autodiag.config import settings
from autodiag.errors import EmbeddingError
from autodiag.logging_config import configure_logging
from autodiag.models import EvidenceDocument, VehicleScope
from autodiag.rag.client import get_client
from autodiag.rag.embedding import Embedder, OllamaEmbeddingService
from autodiag.rag.schema import init_schema
from autodiag.rag.weaviate_store import WeaviateEvidenceStore, document_checksum

logger = structlog.get_logger(__name__)

_DEFAULT_FILE = Path(__file__).resolve().parent.parent / "data" / "service_bulletins.json"


def parse_bulletin(raw: Dict[str, Any]) -> EvidenceDocument:
    """Convert one bulletin record into an :class:`EvidenceDocument`.

    Records carry either a single ``year`` or a ``year_min``/``year_max``
    range.
    """
    year_min = raw.get("year_min", raw.get("year"))
    year_max = raw.get("year_max", raw.get("year"))
    return EvidenceDocument(
        id=raw["id"],
        vehicle_scope=VehicleScope(
            make=raw["make"],
            model=raw["model"],
            year_min=year_min,
            year_max=year_max,
        ),
        component=raw["component"],
        symptom_text=raw["symptom"],
        diagnosis_text=raw["diagnosis"],
        remedy_text=raw["solution"],
        severity=raw.get("severity", "medium"),
        bulletin_number=raw.get("tsb_number") or None,
    )


def load_bulletins(path: Path) -> List[EvidenceDocument]:
    """Load and validate every bulletin in a JSON list file."""
    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)
    return [parse_bulletin(record) for record in records]


async def ingest_documents(
    documents: List[EvidenceDocument],
    store: WeaviateEvidenceStore,
    embedder: Embedder,
) -> dict:
    """Embed and upsert *documents*, skipping ones already stored.

    Returns:
        Dict with inserted, skipped and failed counts.
    """
    inserted = 0
    skipped = 0
    failed = 0

    for document in documents:
        log = logger.bind(doc_id=document.id)

        if await store.has_checksum(document_checksum(document)):
            skipped += 1
            continue

        try:
            vector = await embedder.embed(document.embedding_text())
        except EmbeddingError as e:
            log.warning("ingest.embedding_failed", error=e.message)
            failed += 1
            continue

        try:
            await store.upsert(document.model_copy(update={"embedding": vector}))
            inserted += 1
        except Exception as e:
            log.error("ingest.upsert_error", error=str(e))
            failed += 1

    logger.info("ingest.done", inserted=inserted, skipped=skipped, failed=failed)
    return {"inserted": inserted, "skipped": skipped, "failed": failed}


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ingest service bulletins into Weaviate."
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=_DEFAULT_FILE,
        help="JSON file containing a list of bulletins (default: bundled seed data).",
    )
    parser.add_argument(
        "--force-recreate",
        action="store_true",
        help="Delete and recreate the Weaviate collection before ingestion.",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level, settings.log_format)

    if not args.file.exists():
        logger.error("ingest.file_not_found", file=str(args.file))
        return

    documents = load_bulletins(args.file)
    logger.info("ingest.bulletins_loaded", count=len(documents))

    try:
        client = get_client(settings)
    except Exception as e:
        logger.error("ingest.connection_failed", error=str(e))
        return

    try:
        init_schema(
            client,
            collection_name=settings.weaviate_collection,
            force_recreate=args.force_recreate,
        )
    except Exception as e:
        logger.error("ingest.schema_failed", error=str(e))
        client.close()
        return

    store = WeaviateEvidenceStore(settings, client_factory=lambda: client)
    embedder = OllamaEmbeddingService(settings)
    try:
        await ingest_documents(documents, store, embedder)
    finally:
        await embedder.close()
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
