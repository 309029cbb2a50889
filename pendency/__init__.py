"""Pendency tracker: reconciliation and status engine for shipment pendencies."""

__version__ = "1.0.0"
