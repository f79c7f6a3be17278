from enum import Enum


class SortDirection(str, Enum):
    ASC = "ASC"  # 오름차순
    DESC = "DESC"  # 내림차순 (기본값)

    @classmethod
    def parse(cls, value: "str | SortDirection") -> "SortDirection":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid sort direction: {value!r}. Allowed: {[d.value for d in cls]}") from None
