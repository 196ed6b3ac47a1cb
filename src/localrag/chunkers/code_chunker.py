"""Function/class boundary chunking for source code.

The heuristics here are language-specific, so each strategy is registered
per language tag in ``localrag.chunkers.document_chunker``.
"""

from localrag.chunkers.paragraph_chunker import split_by_paragraphs

# Paragraph target used when no declarations were found
FALLBACK_CHUNK_SIZE = 2000

GO_PREFIXES = ("func ", "type ")
JS_PREFIXES = ("function ", "async function ", "class ", "export ", "interface ")
JAVA_PREFIXES = ("public ", "private ", "protected ", "class ", "interface ", "static ")
C_PREFIXES = ("static ", "struct ", "typedef ", "enum ")
TEMPL_PREFIXES = ("templ ", "func ", "css ", "script ")
DEFAULT_PREFIXES = tuple(
    dict.fromkeys(GO_PREFIXES + JS_PREFIXES + JAVA_PREFIXES + ("def ",))
)


class BraceCodeChunker:
    """Split brace-delimited code at top-level declarations.

    A unit starts when a declaration-like line appears at brace depth 0 and
    ends once the depth returns to 0 after having gone positive. Content
    between units (imports, comments) becomes its own section.
    """

    def __init__(self, prefixes: tuple[str, ...] = DEFAULT_PREFIXES):
        self.prefixes = prefixes

    def is_declaration(self, trimmed: str, line_no: int) -> bool:
        if trimmed.startswith(self.prefixes):
            return True
        if "=>" in trimmed:
            return True
        # C-like definitions: "int main(void) {" after the first line
        return line_no > 0 and "(" in trimmed and ")" in trimmed and "{" in trimmed

    def split(self, content: str, max_chunk_size: int) -> list[str]:
        sections: list[str] = []
        current: list[str] = []
        depth = 0
        in_unit = False
        opened = False

        def flush() -> None:
            text = "\n".join(current).strip()
            if text:
                sections.append(text)
            current.clear()

        for line_no, line in enumerate(content.split("\n")):
            if not in_unit and depth == 0 and self.is_declaration(line.strip(), line_no):
                flush()
                in_unit, opened = True, False

            current.append(line)
            depth = max(depth + line.count("{") - line.count("}"), 0)
            opened = opened or "{" in line

            if in_unit and opened and depth == 0:
                flush()
                in_unit = False

        flush()

        if len(sections) < 2:
            return split_by_paragraphs(content, FALLBACK_CHUNK_SIZE)
        return sections


class IndentCodeChunker:
    """Split indentation-delimited code (Python) at top-level definitions.

    Decorators stay attached to the definition that follows them.
    """

    DECLARATIONS = ("def ", "async def ", "class ", "@")

    def split(self, content: str, max_chunk_size: int) -> list[str]:
        sections: list[str] = []
        current: list[str] = []
        after_decorator = False

        for line in content.split("\n"):
            if line.startswith(self.DECLARATIONS) and not after_decorator and current:
                text = "\n".join(current).strip()
                if text:
                    sections.append(text)
                current = []

            current.append(line)
            if line.startswith("@"):
                after_decorator = True
            elif line.strip():
                after_decorator = False

        text = "\n".join(current).strip()
        if text:
            sections.append(text)

        if len(sections) < 2:
            return split_by_paragraphs(content, FALLBACK_CHUNK_SIZE)
        return sections
