"""In-page scripts and DOM wait primitives for browser-control."""

from .scripts import (
    INSTALL_MUTATION_OBSERVER,
    MUTATION_BINDING,
    SELECTOR_PREDICATE,
)
from .wait_task import SelectorWaitTask, WaitTask

__all__ = [
    "INSTALL_MUTATION_OBSERVER",
    "MUTATION_BINDING",
    "SELECTOR_PREDICATE",
    "SelectorWaitTask",
    "WaitTask",
]
