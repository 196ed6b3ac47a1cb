"""Binary file detection utilities."""

import codecs
from pathlib import Path

# Extensions that are never worth decoding as text
BINARY_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    ".pdf", ".zip", ".tar", ".gz", ".rar", ".7z", ".bz2", ".xz",
    ".exe", ".dll", ".so", ".dylib", ".bin", ".pyc", ".class", ".o", ".wasm",
    ".mp3", ".mp4", ".wav", ".mov", ".ttf", ".otf", ".woff", ".woff2",
    ".db", ".sqlite", ".lrindex",
}

# Printable ASCII plus tab, LF, CR
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}


def detect_binary(path: str | Path, content: bytes, sample_size: int = 8192) -> bool:
    """Guess whether a file is binary from its extension, then its bytes.

    A NUL byte in the sample marks the content as binary. Samples that decode
    as UTF-8 are text; anything else is binary when more than 30% of its
    bytes are non-printable.
    """
    if Path(path).suffix.lower() in BINARY_EXTENSIONS:
        return True
    if not content:
        return False

    sample = content[:sample_size]
    if b"\x00" in sample:
        return True

    # Incremental decoding tolerates a multi-byte sequence cut at the sample edge
    try:
        codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
        return False
    except UnicodeDecodeError:
        pass

    non_text = sum(1 for byte in sample if byte not in _TEXT_BYTES)
    return (non_text / len(sample)) > 0.30
