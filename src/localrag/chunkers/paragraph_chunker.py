"""Paragraph- and line-based splitting.

Sizes are measured in UTF-8 bytes, the unit embedding providers bill and
limit on.
"""


def byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def split_by_paragraphs(content: str, max_size: int) -> list[str]:
    """Pack blank-line separated paragraphs into chunks of at most ``max_size`` bytes.

    A single paragraph that is larger than ``max_size`` on its own is split
    mid-paragraph by lines.
    """
    chunks: list[str] = []
    current: list[str] = []
    current_size = 0

    for para in content.split("\n\n"):
        para_size = byte_len(para) + 2  # +2 for the "\n\n" separator

        if current and current_size + para_size > max_size:
            chunks.append("\n\n".join(current).strip())
            current, current_size = [], 0

        if para_size > max_size:
            chunks.extend(piece.strip() for piece in split_by_lines(para, max_size))
            continue

        current.append(para)
        current_size += para_size

    if current:
        chunks.append("\n\n".join(current).strip())

    return [chunk for chunk in chunks if chunk]


def split_by_lines(content: str, max_size: int) -> list[str]:
    """Pack lines into chunks of at most ``max_size`` bytes.

    Used when a section is too large for paragraph splitting to help. A line
    longer than ``max_size`` is hard-split.
    """
    chunks: list[str] = []
    current: list[str] = []
    current_size = 0

    for line in content.split("\n"):
        line_size = byte_len(line) + 1
        if current and current_size + line_size > max_size:
            chunks.append("\n".join(current))
            current, current_size = [], 0

        if line_size > max_size:
            chunks.extend(_hard_split(line, max_size))
            continue

        current.append(line)
        current_size += line_size

    if current:
        chunks.append("\n".join(current))

    return [chunk for chunk in chunks if chunk.strip()]


def _hard_split(text: str, max_size: int) -> list[str]:
    pieces: list[str] = []
    start = 0
    size = 0
    for pos, char in enumerate(text):
        char_size = byte_len(char)
        if size + char_size > max_size and pos > start:
            pieces.append(text[start:pos])
            start, size = pos, 0
        size += char_size
    pieces.append(text[start:])
    return pieces


class ParagraphChunker:
    """Default strategy: blank-line delimited paragraphs bounded by the chunk size."""

    def split(self, content: str, max_chunk_size: int) -> list[str]:
        if not content or not content.strip():
            return []
        return split_by_paragraphs(content, max_chunk_size)
