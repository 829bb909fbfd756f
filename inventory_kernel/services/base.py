"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor for every service that mutates ledger state.  A
    service receives the Session of the caller's unit of work and an
    injected Clock, and persists with ``session.flush()`` only.

Invariants enforced:
    Services never commit or roll back.  The unit of work opened by the
    InventoryLedger facade owns the transaction, so a sale's header, items,
    lot decrements and log entries land together or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel write services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only listings; those live in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
