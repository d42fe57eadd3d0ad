"""
Edge daemon package for the TP-Link gateway counter pipeline.

Scrapes traffic counters from a TP-Link gateway web UI, compensates 32-bit
counter wraparounds with a persistent overflow cache, and emits monotonically
increasing cumulative values as InfluxDB line protocol.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
