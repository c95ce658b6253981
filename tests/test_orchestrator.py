import os
import string
import time

import pytest

import generator.data_generator as data_generator
import generator.orchestrator as orchestrator_module
from generator.chunk_cache import GenerationContext
from generator.orchestrator import (
    DONE,
    FAILED,
    GenerationOrchestrator,
    make_request,
)
from utils.errors import IO_ERROR, OUT_OF_MEMORY

SMALL_CHUNKS = {'max_dump_chunk_bytes': 100000, 'max_worker_bytes': 100000}


def test_request_validation():
    request = make_request(10, 4, 2)
    assert request.target_bytes == 10
    with pytest.raises(AttributeError):
        request.target_bytes = 11
    with pytest.raises(ValueError):
        make_request(10, 0)
    with pytest.raises(ValueError):
        make_request(-1, 4)
    with pytest.raises(ValueError):
        make_request(10, 4, 0)


def test_two_megabyte_uniform_file(tmp_path):
    result = GenerationOrchestrator().generate_file(str(tmp_path), "test", 2)

    path = tmp_path / "test.txt"
    assert result['state'] == DONE
    assert result['error'] is None
    assert result['path'] == str(path)
    assert result['bytes_written'] == 2097152
    assert os.path.getsize(path) == 2097152
    assert path.read_bytes() == b"a" * 2097152


def test_multi_chunk_file_has_exact_length(tmp_path):
    orchestrator = GenerationOrchestrator(SMALL_CHUNKS)
    result = orchestrator.generate_file(str(tmp_path), "chunks", 1)

    assert result['state'] == DONE
    assert os.path.getsize(tmp_path / "chunks.txt") == 1048576
    assert orchestrator.cursor == {'bytes_written': 1048576, 'total_bytes': 1048576}


def test_zero_byte_file(tmp_path):
    result = GenerationOrchestrator().generate_file(str(tmp_path), "empty", 0)

    assert result['state'] == DONE
    assert (tmp_path / "empty.txt").exists()
    assert os.path.getsize(tmp_path / "empty.txt") == 0


def test_random_file_uses_the_alphabet(tmp_path):
    result = GenerationOrchestrator(SMALL_CHUNKS).generate_file(str(tmp_path), "rand", 1, mode="random")

    data = (tmp_path / "rand.txt").read_bytes()
    assert result['state'] == DONE
    assert len(data) == 1048576
    assert set(data.decode('ascii')) == set(string.ascii_lowercase)


def test_random_single_worker_repeats_reference_chunk(tmp_path):
    GenerationOrchestrator(SMALL_CHUNKS).generate_file(str(tmp_path), "rand", 250000, unit="B", mode="random")

    data = (tmp_path / "rand.txt").read_bytes()
    assert data[:100000] == data[100000:200000]
    assert data[200000:] == data[:50000]


def test_byte_unit(tmp_path):
    result = GenerationOrchestrator().generate_file(str(tmp_path), "bytes", 12345, unit="B")
    assert result['target_bytes'] == 12345
    assert os.path.getsize(tmp_path / "bytes.txt") == 12345


def test_reference_chunk_is_reused_for_same_size(tmp_path):
    context = GenerationContext()
    first = GenerationOrchestrator(SMALL_CHUNKS, context=context)
    first.generate_file(str(tmp_path), "one", 1)
    assert context.cache.misses == 1

    second = GenerationOrchestrator(SMALL_CHUNKS, context=context)
    second.generate_file(str(tmp_path), "two", 2)
    assert context.cache.hits == 1
    assert os.path.getsize(tmp_path / "one.txt") == 1048576
    assert os.path.getsize(tmp_path / "two.txt") == 2097152


def test_cache_replaced_when_chunk_size_changes(tmp_path):
    context = GenerationContext()
    GenerationOrchestrator(SMALL_CHUNKS, context=context).generate_file(
        str(tmp_path), "big", 1, mode="random")
    GenerationOrchestrator({'max_dump_chunk_bytes': 3000}, context=context).generate_file(
        str(tmp_path), "small", 10000, unit="B", mode="random")

    assert context.cache.key == (3000, "random")
    assert context.cache.hits == 0
    assert os.path.getsize(tmp_path / "big.txt") == 1048576
    assert os.path.getsize(tmp_path / "small.txt") == 10000


def test_cache_not_shared_without_context(tmp_path):
    first = GenerationOrchestrator()
    second = GenerationOrchestrator()
    assert first.context is not second.context


def test_multi_worker_file(tmp_path):
    result = GenerationOrchestrator(SMALL_CHUNKS).generate_file(str(tmp_path), "multi", 2, workers=4)

    assert result['state'] == DONE
    assert result['bytes_written'] == 2097152
    assert (tmp_path / "multi.txt").read_bytes() == b"a" * 2097152


def test_multi_worker_uneven_remainder_is_written(tmp_path):
    result = GenerationOrchestrator().generate_file(str(tmp_path), "odd", 1000003, unit="B", workers=3)

    assert result['state'] == DONE
    assert os.path.getsize(tmp_path / "odd.txt") == 1000003


def test_multi_worker_random_file(tmp_path):
    GenerationOrchestrator(SMALL_CHUNKS).generate_file(str(tmp_path), "mr", 1, mode="random", workers=2)

    data = (tmp_path / "mr.txt").read_bytes()
    assert len(data) == 1048576
    assert set(data) <= set(string.ascii_lowercase.encode('ascii'))


def test_missing_directory_fails_with_io_error(tmp_path):
    missing = tmp_path / "does" / "not" / "exist"
    orchestrator = GenerationOrchestrator()
    result = orchestrator.generate_file(str(missing), "test", 1)

    assert result['state'] == FAILED
    assert orchestrator.state == FAILED
    assert result['error']['kind'] == IO_ERROR
    assert result['bytes_written'] == 0
    assert not missing.exists()


def test_out_of_memory_fails_and_leaves_file(tmp_path, monkeypatch):
    def no_memory(*args, **kwargs):
        raise MemoryError("cannot allocate chunk")

    monkeypatch.setattr(orchestrator_module, "generate", no_memory)
    result = GenerationOrchestrator().generate_file(str(tmp_path), "oom", 1)

    assert result['state'] == FAILED
    assert result['error']['kind'] == OUT_OF_MEMORY
    assert "cannot allocate chunk" in result['error']['detail']
    assert (tmp_path / "oom.txt").exists()


def test_write_error_fails_generation(tmp_path, monkeypatch):
    def disk_full(self, chunk):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(orchestrator_module.ChunkWriter, "write_chunk", disk_full)
    result = GenerationOrchestrator().generate_file(str(tmp_path), "full", 1)

    assert result['state'] == FAILED
    assert result['error']['kind'] == IO_ERROR
    assert "No space left" in result['error']['detail']


def test_unknown_mode_is_rejected_before_writing(tmp_path):
    with pytest.raises(ValueError):
        GenerationOrchestrator().generate_file(str(tmp_path), "bad", 1, mode="zeros")
    assert not (tmp_path / "bad.txt").exists()


def test_slow_first_share_does_not_pile_up_later_chunks(tmp_path, monkeypatch):
    real_generate = data_generator.generate

    def slow_first(count, mode, index=0, alphabet=string.ascii_lowercase):
        if index == 0:
            time.sleep(0.5)
        return real_generate(count, mode, index, alphabet)

    monkeypatch.setattr(data_generator.os, "cpu_count", lambda: 4)
    monkeypatch.setattr(data_generator, "generate", slow_first)

    peak = []
    real_write_chunk = orchestrator_module.ChunkWriter.write_chunk

    def spy(self, chunk):
        written = real_write_chunk(self, chunk)
        peak.append(self.pending_count)
        return written

    monkeypatch.setattr(orchestrator_module.ChunkWriter, "write_chunk", spy)

    config = {'max_dump_chunk_bytes': 1000, 'max_worker_bytes': 1000}
    result = GenerationOrchestrator(config).generate_file(str(tmp_path), "slow", 40000, unit="B", workers=4)

    assert result['state'] == DONE
    assert os.path.getsize(tmp_path / "slow.txt") == 40000
    assert len(peak) == 40
    assert max(peak) <= 4


def test_debug_config_leaves_module_log_level_alone():
    level = orchestrator_module.logger.level
    GenerationOrchestrator({'log_level': 'DEBUG'})
    assert orchestrator_module.logger.level == level
