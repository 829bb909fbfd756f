"""
Module: inventory_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import inventory_kernel
    domain DTOs, exceptions and logging.  MUST NOT import inventory_services.

Invariants enforced:
    - Engines never read the clock or the database.
    - Determinism: identical inputs always produce identical outputs.
"""

from inventory_engines.allocation import (
    AllocationLine,
    AllocationPlan,
    AllocationRequest,
    AllocationResult,
    FifoAllocator,
    fifo_sort_key,
    group_lots,
    order_lots,
)
from inventory_engines.line_split import PricedLine, split_line_pricing
from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import LotSnapshot

__all__ = [
    "AllocationLine",
    "AllocationPlan",
    "AllocationRequest",
    "AllocationResult",
    "FifoAllocator",
    "LotSnapshot",
    "PricedLine",
    "fifo_sort_key",
    "group_lots",
    "order_lots",
    "split_line_pricing",
    "traced_engine",
]
