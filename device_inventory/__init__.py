"""Warehouse stock orders expanded into per-unit device records.

The ASGI application lives in :mod:`device_inventory.main`.
"""

__version__ = "0.1.0"
