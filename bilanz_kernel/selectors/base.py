"""
Module: bilanz_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/base.py and
    models/.  MUST NOT import from outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors return frozen dataclasses, not ORM instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Base class holding the caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
