"""
Inventory Kernel

Stock counters, reservations and the append-only adjustment log for an
order-processing backend, with:
- All-or-nothing order reservation
- Idempotent reserve/release under duplicate delivery
- Deadlock-free row locking in sorted SKU order
- Invariant-checked manual adjustments
"""

__version__ = "0.1.0"
