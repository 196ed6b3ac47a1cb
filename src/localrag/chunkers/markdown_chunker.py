"""Header-based chunking for markdown documents."""


class MarkdownChunker:
    """Split markdown on header lines.

    Each run from one header (or the start of the file) to the next header is
    one section. Lines inside fenced code blocks are never treated as headers,
    so shell comments in examples do not break sections apart.
    """

    def split(self, content: str, max_chunk_size: int) -> list[str]:
        sections: list[str] = []
        current: list[str] = []
        in_fence = False

        for line in content.split("\n"):
            stripped = line.strip()
            if stripped.startswith("```") or stripped.startswith("~~~"):
                in_fence = not in_fence
            elif not in_fence and stripped.startswith("#") and current:
                sections.append("\n".join(current).strip())
                current = []
            current.append(line)

        if current:
            sections.append("\n".join(current).strip())

        return [section for section in sections if section]
