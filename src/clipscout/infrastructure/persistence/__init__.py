from .result_cache import CacheResultSink, serialize_result

__all__ = ["CacheResultSink", "serialize_result"]
