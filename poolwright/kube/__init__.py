"""Kubernetes adapter: the only place unstructured manifests exist."""

from .codec import decode_pool, decode_workload, encode_pool
from .store import KubeStore

__all__ = ["KubeStore", "decode_pool", "decode_workload", "encode_pool"]
