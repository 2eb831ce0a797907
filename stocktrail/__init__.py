"""
StockTrail - inventory and borrowing tracker.
"""

__version__ = "1.0.0"
