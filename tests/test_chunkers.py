"""Tests for type-aware document chunking."""

import pytest

from localrag.chunkers import (
    BraceCodeChunker,
    IndentCodeChunker,
    MarkdownChunker,
    ParagraphChunker,
    chunk_document,
    estimate_tokens,
    register_strategy,
    split_by_lines,
    split_by_paragraphs,
    strategy_for,
)
from localrag.chunkers.paragraph_chunker import byte_len
from localrag.models import Document, FileMetadata


def make_doc(content: str, doc_type: str = "text", source: str = "notes.txt") -> Document:
    return Document(
        content=content,
        source=source,
        metadata=FileMetadata(path=source, doc_type=doc_type, size_bytes=len(content)),
    )


class TestParagraphSplitting:
    def test_packs_paragraphs_up_to_limit(self):
        paras = [f"paragraph {i} " + "x" * 80 for i in range(6)]
        chunks = split_by_paragraphs("\n\n".join(paras), 200)

        assert len(chunks) == 3
        assert all(byte_len(c) <= 200 for c in chunks)
        assert chunks[0].startswith("paragraph 0")

    def test_oversized_paragraph_is_split_by_lines(self):
        para = "\n".join(f"line {i} " + "y" * 40 for i in range(20))
        chunks = split_by_paragraphs(para, 150)

        assert len(chunks) > 1
        assert all(byte_len(c) <= 150 for c in chunks)

    def test_long_line_is_hard_split(self):
        chunks = split_by_lines("x" * 1000, 300)

        assert [len(c) for c in chunks] == [300, 300, 300, 100]
        assert "".join(chunks) == "x" * 1000

    def test_sizes_are_measured_in_bytes(self):
        chunks = split_by_lines("é" * 200, 100)

        assert all(byte_len(c) <= 100 for c in chunks)
        assert "".join(chunks) == "é" * 200

    def test_empty_content_yields_nothing(self):
        assert ParagraphChunker().split("", 100) == []
        assert ParagraphChunker().split("  \n\n ", 100) == []


class TestMarkdownChunker:
    def test_splits_on_headers(self):
        content = "intro text\n# One\nfirst\n## Two\nsecond"
        assert MarkdownChunker().split(content, 1000) == [
            "intro text",
            "# One\nfirst",
            "## Two\nsecond",
        ]

    def test_ignores_headers_inside_code_fences(self):
        content = "# Setup\n```bash\n# install deps\nmake\n```\nmore setup\n# Usage\nrun it"
        sections = MarkdownChunker().split(content, 1000)

        assert len(sections) == 2
        assert "# install deps" in sections[0]
        assert sections[1] == "# Usage\nrun it"


class TestCodeChunkers:
    def test_go_functions_become_sections(self):
        content = "package main\n\nfunc A() {\n\treturn\n}\n\nfunc B() {\n\treturn\n}\n"
        sections = BraceCodeChunker(("func ", "type ")).split(content, 1500)

        assert sections == [
            "package main",
            "func A() {\n\treturn\n}",
            "func B() {\n\treturn\n}",
        ]

    def test_nested_braces_stay_in_one_unit(self):
        content = "func A() {\n\tif x {\n\t\ty()\n\t}\n}\nfunc B() {\n}"
        sections = BraceCodeChunker(("func ",)).split(content, 1500)

        assert sections[0] == "func A() {\n\tif x {\n\t\ty()\n\t}\n}"
        assert sections[1] == "func B() {\n}"

    def test_falls_back_to_paragraphs_without_declarations(self):
        content = "just some text\n\nwith paragraphs"
        assert BraceCodeChunker(("func ",)).split(content, 1500) == [
            "just some text\n\nwith paragraphs"
        ]

    def test_python_decorators_stay_attached(self):
        content = "import os\n\n@cache\ndef f():\n    pass\n\nclass C:\n    pass\n"
        assert IndentCodeChunker().split(content, 1500) == [
            "import os",
            "@cache\ndef f():\n    pass",
            "class C:\n    pass",
        ]


class TestChunkDocument:
    def test_every_chunk_keeps_document_source(self):
        content = "\n\n".join(f"# Section {i}\n\n" + "words " * 30 for i in range(4))
        doc = make_doc(content, "markdown", "guide.md")

        chunks = list(chunk_document(doc, 1500))

        assert len(chunks) == 4
        for i, chunk in enumerate(chunks):
            assert chunk.source == "guide.md"
            assert chunk.metadata == {"source": "guide.md", "type": "markdown", "chunk_index": str(i)}

    def test_short_sections_are_dropped(self):
        content = "# Tiny\n\n# Real\n\n" + "this section has enough text to be worth embedding " * 2
        chunks = list(chunk_document(make_doc(content, "markdown", "a.md"), 1500))

        assert len(chunks) == 1
        assert chunks[0].metadata["chunk_index"] == "1"

    def test_oversized_section_is_split_into_numbered_pieces(self):
        content = "# Big\n\n" + "\n\n".join("p" * 100 for _ in range(5))
        chunks = list(chunk_document(make_doc(content, "markdown", "big.md"), 250))

        assert len(chunks) > 1
        assert all(byte_len(c.text) <= 250 for c in chunks)
        assert [c.metadata["chunk_index"] for c in chunks] == [
            f"0.{j}" for j in range(len(chunks))
        ]

    def test_huge_section_is_split_by_lines(self):
        # One paragraph of ~24k estimated tokens, far above the section ceiling
        content = "\n".join("z" * 99 for _ in range(1000))
        chunks = list(chunk_document(make_doc(content), 200_000))

        assert len(chunks) > 1
        assert all(byte_len(c.text) <= 16000 for c in chunks)

    def test_empty_document_has_no_chunks(self):
        assert list(chunk_document(make_doc(""), 1500)) == []

    def test_unknown_type_uses_paragraphs(self):
        assert isinstance(strategy_for("cobol"), ParagraphChunker)

    def test_registered_strategy_is_used(self):
        class LineStrategy:
            def split(self, content, max_chunk_size):
                return content.split("\n")

        register_strategy("test-lines", LineStrategy())
        content = "a" * 60 + "\n" + "b" * 60
        chunks = list(chunk_document(make_doc(content, "test-lines"), 1500))

        assert [c.text for c in chunks] == ["a" * 60, "b" * 60]


@pytest.mark.parametrize("text,expected", [("", 0), ("abcd", 1), ("a" * 4000, 1000)])
def test_estimate_tokens(text, expected):
    assert estimate_tokens(text) == expected
