"""Inventory reports for ESXi hosts managed through vCenter."""

__version__ = "0.1.0"
