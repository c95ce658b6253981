import os
import string
from typing import Any, Dict, Optional

# Dumping at 800MB
MAX_DUMP_CHUNK_BYTES = 838900000
MAX_WORKER_BYTES = MAX_DUMP_CHUNK_BYTES
WRITE_BUFFER_SIZE = 8 * 1024 * 1024  # 8 MB
MAX_JOB_BYTES = 10 * 1024 * 1024 * 1024  # 10 GB per HTTP job
ALPHABET = string.ascii_lowercase
OUTPUT_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'generated_files')
LOG_LEVEL = "INFO"

ENV_PREFIX = "TEXTGEN_"

# config key -> environment variable suffix
ENV_KEYS = {
    'max_dump_chunk_bytes': 'MAX_DUMP_BYTES',
    'max_worker_bytes': 'MAX_WORKER_BYTES',
    'write_buffer_size': 'WRITE_BUFFER',
    'max_job_bytes': 'MAX_JOB_BYTES',
    'output_dir': 'OUTPUT_DIR',
    'log_level': 'LOG_LEVEL',
}

INT_KEYS = ('max_dump_chunk_bytes', 'max_worker_bytes', 'write_buffer_size', 'max_job_bytes')


def default_config() -> Dict[str, Any]:
    return {
        'max_dump_chunk_bytes': MAX_DUMP_CHUNK_BYTES,
        'max_worker_bytes': MAX_WORKER_BYTES,
        'write_buffer_size': WRITE_BUFFER_SIZE,
        'max_job_bytes': MAX_JOB_BYTES,
        'alphabet': ALPHABET,
        'output_dir': OUTPUT_DIR,
        'log_level': LOG_LEVEL,
    }


def get_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge defaults, TEXTGEN_* environment variables and explicit overrides"""
    config = default_config()

    for key, suffix in ENV_KEYS.items():
        value = os.environ.get(ENV_PREFIX + suffix)
        if value:
            config[key] = value

    if overrides:
        unknown = set(overrides) - set(config)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        config.update({k: v for k, v in overrides.items() if v is not None})

    for key in INT_KEYS:
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {config[key]!r}")
        if config[key] <= 0:
            raise ValueError(f"{key} must be positive, got {config[key]}")

    if not config['alphabet']:
        raise ValueError("alphabet must not be empty")
    config['log_level'] = str(config['log_level']).upper()

    return config
