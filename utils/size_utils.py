from typing import List, Tuple

KILOBYTE = 1024
MEGABYTE = KILOBYTE * 1024
GIGABYTE = MEGABYTE * 1024

# Sizes must fit an unsigned 64-bit integer
MAX_BYTES = 2 ** 64 - 1

UNITS = {
    'B': 1,
    'MB': MEGABYTE,
    'GB': GIGABYTE,
}


def _check_bytes(value):
    if value < 0:
        raise ValueError(f"Size must not be negative, got {value}")
    if value > MAX_BYTES:
        raise ValueError(f"Size {value} does not fit in 64 bits")
    return value


def bytes_from_megabytes(n: int) -> int:
    return _check_bytes(_check_bytes(n) * MEGABYTE)


def bytes_from_gigabytes(n: int) -> int:
    return _check_bytes(_check_bytes(n) * GIGABYTE)


def bytes_from_unit(n: int, unit: str = "MB") -> int:
    """Convert a size in the given unit (B, MB or GB) to bytes"""
    try:
        multiplier = UNITS[unit.upper()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown size unit: {unit!r}")
    return _check_bytes(_check_bytes(n) * multiplier)


def split_into_chunks(total_bytes: int, chunk_size: int) -> Tuple[int, int]:
    """Return (full_chunk_count, remainder_bytes) for writing total_bytes in chunk_size pieces"""
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    _check_bytes(total_bytes)
    full_chunks = total_bytes // chunk_size
    remainder = total_bytes - full_chunks * chunk_size
    return full_chunks, remainder


def chunk_boundaries(total_bytes: int, chunk_size: int) -> List[Tuple[int, int]]:
    """List (index, size) for every chunk of the file, the partial one last"""
    full_chunks, remainder = split_into_chunks(total_bytes, chunk_size)
    boundaries = [(i, chunk_size) for i in range(full_chunks)]
    if remainder:
        boundaries.append((full_chunks, remainder))
    return boundaries


def per_worker_shares(total_bytes: int, worker_count: int, max_per_worker: int) -> List[int]:
    """
    Split total_bytes across workers.

    Every share is at most max_per_worker. When the even share is too big the
    worker count grows to total_bytes // max_per_worker. Whatever does not
    divide evenly becomes one extra final share, so the shares always add up
    to total_bytes.
    """
    if worker_count < 1:
        raise ValueError(f"Worker count must be at least 1, got {worker_count}")
    if max_per_worker < 1:
        raise ValueError(f"Max bytes per worker must be positive, got {max_per_worker}")
    _check_bytes(total_bytes)

    if total_bytes == 0:
        return []

    share = total_bytes // worker_count
    if share == 0:
        # Fewer bytes than workers
        share, worker_count = total_bytes, 1
    if share > max_per_worker:
        share = max_per_worker
        worker_count = total_bytes // share

    shares = [share] * worker_count
    remainder = total_bytes - share * worker_count
    if remainder:
        shares.append(remainder)
    return shares


def format_size(n: int) -> str:
    return f"{n / MEGABYTE:.2f}MB"
