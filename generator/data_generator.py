import os
import queue
import random
import threading
import time
import uuid
from typing import Dict, Iterator, List

from utils.config import ALPHABET
from utils.logger import get_logger

UNIFORM = "uniform"
RANDOM = "random"
MODES = (UNIFORM, RANDOM)

FILLER_CHAR = b"a"

logger = get_logger(__name__)


def make_chunk(index, data):
    return {
        'index': index,
        'data': data,
        'size': len(data)
    }


def generate_uniform(count: int) -> bytes:
    return FILLER_CHAR * count


def generate_random(count: int, alphabet: str = ALPHABET) -> bytes:
    """Random letters, drawn uniformly over the whole alphabet"""
    # Fresh source per call, seeded from a new UUID
    rng = random.Random(uuid.uuid4().int)
    letters = alphabet.encode('ascii')
    return bytes(rng.choices(letters, k=count))


def generate(count: int, mode: str = UNIFORM, index: int = 0, alphabet: str = ALPHABET) -> Dict:
    """Produce a chunk of exactly count characters"""
    if count < 0:
        raise ValueError(f"Cannot generate {count} characters")
    if mode == UNIFORM:
        data = generate_uniform(count)
    elif mode == RANDOM:
        data = generate_random(count, alphabet)
    else:
        raise ValueError(f"Unknown generation mode: {mode!r} (expected one of {MODES})")
    return make_chunk(index, data)


def pool_size(requested: int) -> int:
    """Worker threads actually started: never more than the available CPUs"""
    return max(1, min(requested, os.cpu_count() or 1))


class ParallelGenerator:
    """
    Generate one chunk per share on a bounded pool of worker threads.

    A worker takes a slot before it starts a share and the consumer gives
    the slot back with release() once that chunk is on disk. Shares are
    taken in index order, so at most num_workers chunks are ever held in
    memory and the lowest unwritten index is always being generated.
    """

    def __init__(self, shares: List[int], mode: str = UNIFORM, num_workers: int = 1,
                 alphabet: str = ALPHABET):
        if mode not in MODES:
            raise ValueError(f"Unknown generation mode: {mode!r} (expected one of {MODES})")
        self.shares = shares
        self.mode = mode
        self.alphabet = alphabet
        self.num_workers = min(pool_size(num_workers), max(1, len(shares)))
        self.task_queue = queue.Queue()
        self.result_queue = queue.Queue(maxsize=self.num_workers)
        self.slots = threading.Semaphore(self.num_workers)
        self.stop_event = threading.Event()

        for index, share in enumerate(shares):
            self.task_queue.put((index, share))

    def release(self, count=1):
        """Free the slots of chunks that have been written"""
        for _ in range(count):
            self.slots.release()

    def worker(self):
        """Worker thread that processes the task queue"""
        while not self.stop_event.is_set():
            if not self.slots.acquire(timeout=0.1):
                continue
            try:
                index, share = self.task_queue.get_nowait()
            except queue.Empty:
                self.slots.release()
                break

            start = time.perf_counter()
            try:
                chunk = generate(share, self.mode, index, self.alphabet)
            except Exception as e:
                self.result_queue.put(e)
                break
            finally:
                self.task_queue.task_done()

            logger.info(f"Worker {threading.current_thread().name} generated chunk {index} "
                        f"({share} bytes) in {(time.perf_counter() - start) * 1000:.0f}MS")
            self.result_queue.put(chunk)

    def chunks(self) -> Iterator[Dict]:
        """Yield chunks in arrival order, blocking until each one is ready"""
        threads = [threading.Thread(target=self.worker, name=f"gen-{i}", daemon=True)
                   for i in range(self.num_workers)]
        for t in threads:
            t.start()

        try:
            for _ in range(len(self.shares)):
                item = self.result_queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.stop_event.set()
            # Unblock workers waiting on a full hand-off queue
            while any(t.is_alive() for t in threads):
                try:
                    self.result_queue.get(timeout=0.1)
                except queue.Empty:
                    pass
            for t in threads:
                t.join()


def generate_parallel(shares: List[int], mode: str = UNIFORM, num_workers: int = 1,
                      alphabet: str = ALPHABET) -> Iterator[Dict]:
    """Chunks in arrival order; each slot is freed as soon as the next chunk is asked for"""
    parallel = ParallelGenerator(shares, mode, num_workers, alphabet)
    for chunk in parallel.chunks():
        yield chunk
        parallel.release()
