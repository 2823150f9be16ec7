"""
apmtools: Helpers for verifying APM telemetry lands in Elasticsearch.

Provides the espoll engine, which repeatedly searches a near-real-time
store until the results satisfy a condition or a deadline passes.
"""

__version__ = "0.1.0"
