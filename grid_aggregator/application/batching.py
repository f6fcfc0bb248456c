from typing import List, Sequence, TypeVar

T = TypeVar("T")


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split items into consecutive chunks of batch_size; the last one may be shorter."""
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    return [
        list(items[start:start + batch_size])
        for start in range(0, len(items), batch_size)
    ]


def generate_serial_numbers(count: int, prefix: str = "SN") -> List[str]:
    if count < 0:
        raise ValueError("count must be >= 0")

    width = max(3, len(str(count - 1))) if count else 3
    return [f"{prefix}-{str(i).zfill(width)}" for i in range(count)]


def validate_population(identifiers: Sequence[str]) -> None:
    seen: set[str] = set()
    for identifier in identifiers:
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValueError(f"Invalid device identifier: {identifier!r}")
        if identifier in seen:
            raise ValueError(f"Duplicate device identifier: {identifier}")
        seen.add(identifier)
