"""Encryption engine: batch fetching, row encryption and the per-table driver."""

from columncrypt.engine.driver import PipelineDriver, build_pipeline
from columncrypt.engine.encryptor import BatchEncryptor
from columncrypt.engine.fetcher import BatchFetcher, build_batch_query
from columncrypt.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager

__all__ = [
    "BatchEncryptor",
    "BatchFetcher",
    "MaxRetriesExceeded",
    "PipelineDriver",
    "RetryConfig",
    "RetryManager",
    "build_batch_query",
    "build_pipeline",
]
