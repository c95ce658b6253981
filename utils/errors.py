OUT_OF_MEMORY = "OutOfMemory"
IO_ERROR = "IOError"


def classify_error(exc):
    """Map an exception raised while generating or writing to its error kind"""
    if isinstance(exc, MemoryError):
        return OUT_OF_MEMORY
    if isinstance(exc, OSError):
        return IO_ERROR
    return None


def error_entry(exc):
    """Build the error dict stored in a generation result"""
    return {
        'kind': classify_error(exc),
        'detail': f"{type(exc).__name__}: {exc}"
    }
