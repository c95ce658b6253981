import time
from typing import Dict, Optional

from utils.config import MAX_DUMP_CHUNK_BYTES, WRITE_BUFFER_SIZE
from utils.logger import get_logger

logger = get_logger(__name__)


class ChunkWriter:
    """
    Owns one output file and appends chunks to it in sequence order.

    Chunks may arrive out of order (parallel generation); they are held back
    until every earlier index has been written. Each write is flushed so the
    buffered backlog never grows past one chunk.
    """

    def __init__(self, path: str, total_bytes: Optional[int] = None,
                 max_chunk_bytes: int = MAX_DUMP_CHUNK_BYTES,
                 buffer_size: int = WRITE_BUFFER_SIZE):
        self.path = path
        self.max_chunk_bytes = max_chunk_bytes
        self.buffer_size = buffer_size
        self.file = None
        self.closed = False
        self.next_index = 0
        self.pending: Dict[int, Dict] = {}
        self.cursor = {
            'bytes_written': 0,
            'total_bytes': total_bytes
        }

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def open(self):
        """Create or truncate the output file"""
        self.file = open(self.path, "wb", buffering=self.buffer_size)
        self.closed = False
        logger.debug(f"Opened {self.path} for writing")
        return self

    @property
    def is_complete(self):
        total = self.cursor['total_bytes']
        return total is not None and self.cursor['bytes_written'] == total

    @property
    def pending_count(self):
        return len(self.pending)

    def write_chunk(self, chunk: Dict) -> int:
        """Queue a chunk and write every chunk that is now in order. Returns bytes written."""
        if self.file is None or self.closed:
            raise ValueError(f"Writer for {self.path} is not open")
        if chunk['size'] > self.max_chunk_bytes:
            raise ValueError(f"Chunk {chunk['index']} is {chunk['size']} bytes, "
                             f"limit is {self.max_chunk_bytes}")
        if chunk['index'] < self.next_index or chunk['index'] in self.pending:
            raise ValueError(f"Chunk {chunk['index']} was already written")

        self.pending[chunk['index']] = chunk

        written = 0
        while self.next_index in self.pending:
            ready = self.pending.pop(self.next_index)
            written += self._write(ready)
            self.next_index += 1
        return written

    def _write(self, chunk):
        start = time.perf_counter()
        self.file.write(chunk['data'])
        self.file.flush()
        self.cursor['bytes_written'] += chunk['size']
        logger.debug(f"Wrote chunk {chunk['index']} ({chunk['size']} bytes) "
                     f"in {(time.perf_counter() - start) * 1000:.0f}MS")
        return chunk['size']

    def close(self):
        if self.closed or self.file is None:
            self.closed = True
            return
        if self.pending:
            logger.warning(f"Closing {self.path} with {len(self.pending)} chunks never written "
                           f"(waiting for chunk {self.next_index})")
        self.closed = True
        try:
            self.file.flush()
        finally:
            self.file.close()
