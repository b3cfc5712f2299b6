# Interfaces package init
"""
Strata Backend: Capability Interfaces
=====================================

What:  Abstract contracts for each infrastructure concern.
How:   abc.ABC classes whose async operations either return a typed result or
       raise one of the declared StrataError kinds. Services depend only on
       these classes; concrete adapters live in strata.adapters.

Interface Inventory:
    - Repository[E]: persistence (create, find_by_id, update, delete, list, count)
    - FileStorage:   file storage (put, get, delete)
"""

from strata.interfaces.file_storage import FileStorage
from strata.interfaces.persistence import Repository

__all__ = ["FileStorage", "Repository"]
