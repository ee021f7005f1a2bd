from collections.abc import Callable
from dataclasses import dataclass

from rangebatch.records.contracts import Record


@dataclass(frozen=True, slots=True)
class IdentityTransformer:
    def transform(self, record: Record) -> Record | None:
        return record


@dataclass(frozen=True, slots=True)
class PredicateFilter:
    """Keeps records for which `predicate` holds, drops the rest."""

    predicate: Callable[[Record], bool]

    def transform(self, record: Record) -> Record | None:
        return record if self.predicate(record) else None
