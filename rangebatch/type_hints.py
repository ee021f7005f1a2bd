from typing import Annotated, Literal

from beartype.vale import Is

PositiveInt = Annotated[int, Is[lambda n: n >= 1]]
NonNegativeInt = Annotated[int, Is[lambda n: n >= 0]]


def _is_single_char(s: str) -> bool:
    return len(s) == 1 and s not in {"\n", "\r"}


Delimiter = Annotated[str, Is[_is_single_char]]

FailurePolicy = Literal["fail-fast", "best-effort"]
MappingErrorPolicy = Literal["skip", "fail"]
