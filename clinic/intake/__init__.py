from .factory import get_adapter, ingest_provider_response

__all__ = ["get_adapter", "ingest_provider_response"]
