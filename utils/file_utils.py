import os
import hashlib

BUFFER_SIZE = 4096
FILE_EXTENSION = ".txt"

CONTROL_CHARS = ''.join(chr(c) for c in range(32))
INVALID_FILENAME_CHARS = CONTROL_CHARS + '<>:"/\\|?*'
INVALID_PATH_CHARS = CONTROL_CHARS + '<>"|'


def get_checksum(filename, algorithm='sha256'):
    """Compute file checksum"""
    h = hashlib.new(algorithm)
    with open(filename, 'rb') as f:
        while chunk := f.read(BUFFER_SIZE):
            h.update(chunk)
    return h.hexdigest()


def remove_invalid_chars(text, invalid_chars):
    """Strip every invalid character, blank input gives None"""
    if text is None or not text.strip():
        return None
    return ''.join(c for c in text if c not in invalid_chars)


def sanitize_file_name(name):
    return remove_invalid_chars(name, INVALID_FILENAME_CHARS)


def sanitize_directory(path):
    return remove_invalid_chars(path, INVALID_PATH_CHARS)


def build_output_path(directory, file_name):
    """Path of the generated file: <directory>/<file_name>.txt"""
    return os.path.join(directory, f"{file_name}{FILE_EXTENSION}")
