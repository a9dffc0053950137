"""
Cache-Bench: Cache Backend Latency Benchmark

Compares get/set latency of interchangeable cache backends (a raw TCP
line-protocol cache, an HTTP-fronted cache service and a managed Redis
cache) under sequential and concurrent load.
"""

__version__ = "1.0.0"
