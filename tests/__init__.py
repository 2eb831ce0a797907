"""
StockTrail test suite.

- unit/: services against a temporary SQLite database
- integration/: HTTP API through httpx
"""
