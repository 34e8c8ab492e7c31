"""
Cart-to-store allocation.

Splits a cart across as few stores as possible with greedy maximum coverage:
each round picks the candidate store able to supply the most still-unassigned
lines and gives it all of them. Optimal set cover is NP-hard; the greedy pass
is the intended approximation, not a shortcut.

Ties go to the first store reaching the maximum in candidate order. Callers
pass candidates ascending by store id (the order ``StoreLocator`` returns), so
the result is deterministic for a given cart and inventory snapshot.
"""

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

from .availability import Availability

T = TypeVar("T")

@dataclass
class Allocation(Generic[T]):
    # store id -> cart lines, in the order stores were selected
    assignments: dict[int, list[T]] = field(default_factory=dict)
    unassigned: list[T] = field(default_factory=list)

    @property
    def store_ids(self) -> list[int]:
        return list(self.assignments)

def _product_id(item) -> Optional[int]:
    return getattr(item, "product_id", None)

def allocate(
    cart_items: Sequence[T],
    availability: Iterable[Availability],
    candidate_store_ids: Optional[Sequence[int]] = None,
    key: Callable[[T], Optional[int]] = _product_id,
) -> Allocation[T]:
    """Assign cart lines to stores; lines no candidate carries end up in ``unassigned``.

    Lines are tracked by position, so two lines for the same product are
    independent. Pure function: no I/O, no state kept between calls.
    """
    by_store: dict[int, set[int]] = {}
    for a in availability:
        by_store.setdefault(a.store_id, set()).add(a.product_id)
    carried = {store_id: frozenset(products) for store_id, products in by_store.items()}

    if candidate_store_ids is None:
        candidates = sorted(carried)
    else:
        # Drop duplicates, keep caller order
        candidates = list(dict.fromkeys(candidate_store_ids))

    remaining = frozenset(range(len(cart_items)))
    allocation: Allocation[T] = Allocation()

    while remaining:
        best_store = None
        best_lines: frozenset[int] = frozenset()
        for store_id in candidates:
            stock = carried.get(store_id, frozenset())
            lines = frozenset(i for i in remaining if key(cart_items[i]) in stock)
            if len(lines) > len(best_lines):
                best_store, best_lines = store_id, lines
        if best_store is None:
            break
        allocation.assignments.setdefault(best_store, []).extend(
            cart_items[i] for i in sorted(best_lines)
        )
        remaining = remaining - best_lines

    allocation.unassigned = [cart_items[i] for i in sorted(remaining)]
    return allocation
