"""
Domain layer for mobile-money SMS processing.

This layer contains:
- Data models (fragments, decoded messages, notification events, results)
- Business logic (decode -> classify -> forward pipeline)
- Sinks (downstream event channels)
"""
