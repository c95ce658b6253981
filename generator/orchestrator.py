import time
from typing import Any, Dict, NamedTuple, Optional

from tqdm import tqdm

from generator.chunk_cache import GenerationContext
from generator.data_generator import MODES, ParallelGenerator, generate, make_chunk
from utils.config import get_config
from utils.errors import error_entry
from utils.file_utils import build_output_path
from utils.logger import get_logger
from utils.size_utils import bytes_from_unit, chunk_boundaries, format_size, per_worker_shares
from writer.chunk_writer import ChunkWriter

SIZING = "sizing"
GENERATING = "generating"
WRITING = "writing"
FINALIZING = "finalizing"
DONE = "done"
FAILED = "failed"

logger = get_logger(__name__)


class GenerationRequest(NamedTuple):
    target_bytes: int
    chunk_size_bytes: int
    worker_count: int


def make_request(target_bytes: int, chunk_size_bytes: int, worker_count: int = 1) -> GenerationRequest:
    if target_bytes < 0:
        raise ValueError(f"Target size must not be negative, got {target_bytes}")
    if chunk_size_bytes <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size_bytes}")
    if worker_count < 1:
        raise ValueError(f"Worker count must be at least 1, got {worker_count}")
    return GenerationRequest(target_bytes, chunk_size_bytes, worker_count)


class GenerationOrchestrator:
    """
    Drives the generation of one file at a time.

    With one worker a single reference chunk is generated and written over
    and over (the last write being a prefix of it). The reference chunk is
    kept in the context cache, so random mode files repeat the same block:
    fast, but not random across the whole file. With several workers every
    share is generated separately and the writer puts the chunks back in
    order.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 context: Optional[GenerationContext] = None, show_progress: bool = False):
        self.config = get_config(config)
        self.context = context or GenerationContext()
        self.show_progress = show_progress
        self.state = SIZING
        self.writer = None

    @property
    def cursor(self):
        if self.writer is None:
            return {'bytes_written': 0, 'total_bytes': None}
        return dict(self.writer.cursor)

    def _transition(self, state):
        logger.debug(f"{self.state} -> {state}")
        self.state = state

    def build_request(self, size: int, unit: str = "MB", workers: int = 1) -> GenerationRequest:
        return make_request(bytes_from_unit(size, unit), self.config['max_dump_chunk_bytes'], workers)

    def generate_file(self, directory: str, file_name: str, size: int, unit: str = "MB",
                      mode: str = "uniform", workers: int = 1) -> Dict[str, Any]:
        """Generate <directory>/<file_name>.txt and report how it went"""
        if mode not in MODES:
            raise ValueError(f"Unknown generation mode: {mode!r} (expected one of {MODES})")

        start = time.perf_counter()
        self._transition(SIZING)
        request = self.build_request(size, unit, workers)
        path = build_output_path(directory, file_name)
        result = {
            'path': path,
            'state': self.state,
            'target_bytes': request.target_bytes,
            'bytes_written': 0,
            'elapsed': None,
            'error': None
        }
        logger.info(f"Generating {format_size(request.target_bytes)} ({mode}) into {path} "
                    f"with {request.worker_count} worker(s)")

        try:
            self.writer = ChunkWriter(path, request.target_bytes,
                                      max_chunk_bytes=request.chunk_size_bytes,
                                      buffer_size=self.config['write_buffer_size'])
            with self.writer as writer, tqdm(total=request.target_bytes, unit="B", unit_scale=True,
                                             disable=not self.show_progress) as progress:
                if request.worker_count > 1:
                    self._write_parallel(writer, request, mode, progress)
                else:
                    self._write_sequential(writer, request, mode, progress)
                self._transition(FINALIZING)
        except (MemoryError, OSError) as e:
            self._transition(FAILED)
            result['error'] = error_entry(e)
            if isinstance(e, MemoryError):
                logger.error(f"Out of memory while generating {path}: {e!r}")
            else:
                logger.error(f"I/O error while generating {path}: {e}")
        else:
            self._transition(DONE)
        finally:
            result['elapsed'] = time.perf_counter() - start
            result['state'] = self.state
            result['bytes_written'] = self.cursor['bytes_written']

        if self.state == DONE:
            logger.info(f"File written in ({result['elapsed']:.2f}S) to : {path}")
        return result

    def _reference_chunk(self, length, mode):
        with self.context.lock:
            data = self.context.cache.get(length, mode)
            if data is not None:
                logger.info(f"Reusing generated {format_size(length)} chunk")
                return data

            start = time.perf_counter()
            data = generate(length, mode, alphabet=self.config['alphabet'])['data']
            logger.info(f"DataGen time: {time.perf_counter() - start:.2f}")
            self.context.cache.put(length, mode, data)
            return data

    def _write_sequential(self, writer, request, mode, progress):
        self._transition(GENERATING)
        length = min(request.chunk_size_bytes, request.target_bytes)
        reference = self._reference_chunk(length, mode) if length else b""

        self._transition(WRITING)
        logger.info(f"Dump interval: {format_size(request.chunk_size_bytes)}")

        for index, size in chunk_boundaries(request.target_bytes, request.chunk_size_bytes):
            data = reference if size == len(reference) else memoryview(reference)[:size]
            start = time.perf_counter()
            progress.update(writer.write_chunk(make_chunk(index, data)))
            logger.info(f"FileWrite time: {time.perf_counter() - start:.2f} "
                        f"({writer.cursor['bytes_written'] * 100.0 / request.target_bytes:.2f}%)")

    def _write_parallel(self, writer, request, mode, progress):
        self._transition(GENERATING)
        max_per_worker = min(self.config['max_worker_bytes'], request.chunk_size_bytes)
        shares = per_worker_shares(request.target_bytes, request.worker_count, max_per_worker)
        if len(shares) != request.worker_count:
            logger.info(f"Split into {len(shares)} shares of at most {format_size(max_per_worker)}")

        parallel = ParallelGenerator(shares, mode, request.worker_count, self.config['alphabet'])
        for chunk in parallel.chunks():
            if self.state != WRITING:
                self._transition(WRITING)
            start = time.perf_counter()
            next_index = writer.next_index
            progress.update(writer.write_chunk(chunk))
            # Held-back chunks keep their slot until they reach the disk
            parallel.release(writer.next_index - next_index)
            logger.info(f"Wrote data in {(time.perf_counter() - start) * 1000:.0f}MS")
