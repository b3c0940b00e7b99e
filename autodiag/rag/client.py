"""Weaviate client wrapper (v4)."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

import weaviate
from weaviate.classes.init import Auth

from autodiag.config import Settings, settings as default_settings


def get_client(settings: Optional[Settings] = None) -> weaviate.WeaviateClient:
    """Connect to Weaviate using ``settings.weaviate_url`` (e.g. http://weaviate:8080).

    gRPC is assumed to live on the same host at ``settings.weaviate_grpc_port``.
    """
    settings = settings or default_settings
    url = urlparse(settings.weaviate_url)
    secure = url.scheme == "https"
    host = url.hostname or "localhost"
    port = url.port or (443 if secure else 8080)

    return weaviate.connect_to_custom(
        http_host=host,
        http_port=port,
        http_secure=secure,
        grpc_host=host,
        grpc_port=settings.weaviate_grpc_port,
        grpc_secure=secure,
        auth_credentials=(
            Auth.api_key(settings.weaviate_api_key)
            if settings.weaviate_api_key
            else None
        ),
    )
