import csv
import re
from dataclasses import dataclass
from typing import ClassVar

from rangebatch.errors import MappingError
from rangebatch.records.contracts import FIELD_NAMES, ID_FIELD, Record
from rangebatch.type_hints import Delimiter


@dataclass(frozen=True, slots=True)
class DelimitedLineMapper:
    """Turns one delimited line into a Record.

    Tokenization is non-strict: a line with fewer columns than FIELD_NAMES
    gets its trailing fields defaulted to "", surplus columns are dropped.
    Only the id column is interpreted; everything else stays an opaque string.
    """

    delimiter: Delimiter = ","

    # ASCII digits with an optional minus sign. int() alone also takes "+5",
    # "1_0" and non-ASCII digits.
    _KEY_RE: ClassVar[re.Pattern[str]] = re.compile(r"-?[0-9]+")

    def tokenize(self, line: str) -> dict[str, str]:
        tokens = next(csv.reader([line], delimiter=self.delimiter), [])
        padded = tokens[: len(FIELD_NAMES)]
        padded += [""] * (len(FIELD_NAMES) - len(padded))
        return dict(zip(FIELD_NAMES, padded, strict=True))

    @classmethod
    def parse_key(cls, raw: str) -> int | None:
        s = raw.strip()
        if cls._KEY_RE.fullmatch(s) is None:
            return None
        return int(s)

    def map_line(self, line: str, line_number: int) -> Record:
        s = line.rstrip("\r\n")
        if not s.strip():
            raise MappingError(line_number, s, "blank line")

        try:
            fields = self.tokenize(s)
        except csv.Error as exc:
            raise MappingError(line_number, s, f"cannot tokenize: {exc}") from exc

        key = self.parse_key(fields[ID_FIELD])
        if key is None:
            raise MappingError(
                line_number,
                s,
                f"{ID_FIELD} {fields[ID_FIELD]!r} is not an integer",
            )

        return Record(
            id=key,
            first_name=fields["first_name"],
            last_name=fields["last_name"],
            email=fields["email"],
            gender=fields["gender"],
            contact_no=fields["contact_no"],
            country=fields["country"],
            dob=fields["dob"],
            line_number=line_number,
        )
