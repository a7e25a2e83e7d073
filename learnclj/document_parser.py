from dataclasses import dataclass

from learnclj.lexer import TokenType
from learnclj.markdown_parser import MarkdownParser, FencedBlock, MalformedFenceError


@dataclass
class TextSection:
    text: str


@dataclass
class FenceSection:
    block: FencedBlock


DocumentSection = TextSection | FenceSection


def parse_document_text(text: str) -> list[DocumentSection]:
    """Split markdown into prose and fenced code, in document order.

    The result alternates strictly and starts and ends with a TextSection, so N fenced
    blocks always come with N+1 text sections, some of which may be empty.
    """
    output_sections: list[DocumentSection] = []
    parser = MarkdownParser(text)
    while True:
        # Kept even when empty: consumers rely on the positional alternation
        output_sections.append(TextSection(parser.read_text_until_fence()))

        if parser.lexer.peek().type == TokenType.EOF:
            break

        fence_start = parser.lexer.cursor
        try:
            output_sections.append(FenceSection(parser.parse_fenced_block()))
        except MalformedFenceError as e:
            print(f"Treating the rest of the document as prose: {e}")
            last_section = output_sections.pop()
            output_sections.append(TextSection(last_section.text + text[fence_start:]))
            break

    return output_sections


class TestDocumentParser:
    def test_alternates(self):
        src = """# Numbers

Clojure has integers.

```clojure
(+ 1 2)
```

And ratios.

```clojure-noeval
(/ 1 3)
```
"""
        sections = parse_document_text(src)
        assert sections == [
            TextSection(text="# Numbers\n\nClojure has integers.\n\n"),
            FenceSection(block=FencedBlock(info="clojure", content="\n(+ 1 2)\n", start_pos=34, end_pos=56)),
            TextSection(text="\n\nAnd ratios.\n\n"),
            FenceSection(block=FencedBlock(info="clojure-noeval", content="\n(/ 1 3)\n", start_pos=71, end_pos=100)),
            TextSection(text="\n"),
        ]

    def test_adjacent_blocks_keep_empty_prose(self):
        sections = parse_document_text("```clojure\n1\n``````clojure\n2\n```")
        assert [type(s) for s in sections] == [TextSection, FenceSection, TextSection, FenceSection, TextSection]
        assert sections[0] == TextSection(text="")
        assert sections[2] == TextSection(text="")
        assert sections[4] == TextSection(text="")

    def test_no_fences(self):
        assert parse_document_text("Just *prose*.\n") == [TextSection(text="Just *prose*.\n")]
        assert parse_document_text("") == [TextSection(text="")]

    def test_unterminated_fence_becomes_prose(self):
        src = "Intro\n```clojure\n(+ 1 2)\n```\nMiddle\n```clojure\n(oops"
        sections = parse_document_text(src)
        assert len(sections) == 3
        assert isinstance(sections[1], FenceSection)
        assert sections[2] == TextSection(text="\nMiddle\n```clojure\n(oops")

    def test_reconstructs_body_without_delimiters(self):
        src = "a `b`\n```clojure\n(inc 1)\n```\nc\n```\nplain\n```\n"
        rebuilt = ""
        for section in parse_document_text(src):
            match section:
                case TextSection(text):
                    rebuilt += text
                case FenceSection(block):
                    rebuilt += block.info + block.content
        assert rebuilt == src.replace("```", "")
