"""Weaviate schema definitions."""

import structlog
import weaviate
from weaviate.classes.config import Configure, DataType, Property, Tokenization, VectorDistances

logger = structlog.get_logger(__name__)


def init_schema(
    client: weaviate.WeaviateClient,
    collection_name: str = "ServiceBulletin",
    force_recreate: bool = False,
) -> None:
    """Initialize or recreate the service bulletin collection in Weaviate.

    Vectors are supplied by the caller (no server-side vectorizer) and
    compared by cosine distance.

    Args:
        client: Connected Weaviate client.
        collection_name: Name of the collection to create.
        force_recreate: If True, delete and recreate the collection
            (required after embedding model or schema changes).
    """
    if force_recreate and client.collections.exists(collection_name):
        logger.warning("schema.force_recreate", collection=collection_name)
        client.collections.delete(collection_name)

    if client.collections.exists(collection_name):
        logger.info("schema.collection_exists", collection=collection_name)
        return

    logger.info("schema.creating_collection", collection=collection_name)
    client.collections.create(
        name=collection_name,
        vector_index_config=Configure.VectorIndex.hnsw(
            distance_metric=VectorDistances.COSINE,
        ),
        properties=[
            Property(name="doc_id", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            Property(name="make", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            # Lower-cased make used for case-insensitive filtering
            Property(name="make_key", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            Property(name="model", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            Property(name="year_min", data_type=DataType.INT),
            Property(name="year_max", data_type=DataType.INT),
            Property(name="component", data_type=DataType.TEXT, tokenization=Tokenization.WORD),
            Property(name="symptom_text", data_type=DataType.TEXT),
            Property(name="diagnosis_text", data_type=DataType.TEXT),
            Property(name="remedy_text", data_type=DataType.TEXT),
            Property(name="severity", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            Property(name="bulletin_number", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
            Property(name="checksum", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
        ],
    )
    logger.info("schema.collection_created", collection=collection_name)
