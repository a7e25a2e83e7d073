from dataclasses import dataclass
from typing import Callable, Self

import markdown

from learnclj.document_parser import parse_document_text, TextSection, FenceSection
from learnclj.markdown_parser import FencedBlock


MarkdownRenderer = Callable[[str], str]


def render_markdown(text: str) -> str:
    return markdown.markdown(text)


@dataclass(frozen=True)
class ProseSegment:
    html: str
    # The markdown this HTML was rendered from
    source: str

    def to_dict(self) -> dict:
        return {"html": self.html}


@dataclass(frozen=True)
class CodeSegment:
    language: str
    # Should the code widget let the reader run this block?
    evaluable: bool
    content: str

    @classmethod
    def from_block(cls, block: FencedBlock) -> Self:
        return cls(
            language=block.language,
            evaluable=block.is_evaluable,
            # Drops the newline after the opening fence too
            content=block.content.strip(),
        )

    def to_dict(self) -> dict:
        return {"code": {"lang": self.language, "content": self.content, "evaluable": self.evaluable}}


Segment = ProseSegment | CodeSegment


def segment(body: str, renderer: MarkdownRenderer = render_markdown) -> list[Segment]:
    """Turn a document body into prose and code segments, in document order.

    Prose spans are rendered one at a time through `renderer`. Code is never rendered,
    only tagged, so the presentation layer can hand it to the code widget.
    """
    segments: list[Segment] = []
    for section in parse_document_text(body):
        match section:
            case TextSection(text):
                segments.append(ProseSegment(html=renderer(text), source=text))
            case FenceSection(block):
                segments.append(CodeSegment.from_block(block))
            case unknown_section:
                raise NotImplementedError(f"Don't know how to segment a {unknown_section}")
    return segments


def _echo(text: str) -> str:
    return f"<md>{text}</md>"


class TestSegment:
    def test_interleaves(self):
        body = """Evaluate this:

```clojure
  (+ 1 2)
```

But only read this:

```clojure-noeval
(System/exit 0)
```
"""
        assert segment(body, renderer=_echo) == [
            ProseSegment(html="<md>Evaluate this:\n\n</md>", source="Evaluate this:\n\n"),
            CodeSegment(language="clojure", evaluable=True, content="(+ 1 2)"),
            ProseSegment(html="<md>\n\nBut only read this:\n\n</md>", source="\n\nBut only read this:\n\n"),
            CodeSegment(language="clojure", evaluable=False, content="(System/exit 0)"),
            ProseSegment(html="<md>\n</md>", source="\n"),
        ]

    def test_counts(self):
        body = "x\n```clojure\n1\n```\n```\n2\n```\n```clojure\n3\n```\ny"
        segments = segment(body, renderer=_echo)
        code = [s for s in segments if isinstance(s, CodeSegment)]
        prose = [s for s in segments if isinstance(s, ProseSegment)]
        assert len(code) == 3
        assert len(prose) == 4
        for i, s in enumerate(segments):
            assert isinstance(s, ProseSegment if i % 2 == 0 else CodeSegment)

    def test_untagged_block_is_evaluable(self):
        segments = segment("```\n(str \"a\")\n```", renderer=_echo)
        assert segments[1] == CodeSegment(language="", evaluable=True, content='(str "a")')

    def test_other_languages_are_evaluable(self):
        segments = segment("```bash\nlein repl\n```", renderer=_echo)
        assert segments[1] == CodeSegment(language="bash", evaluable=True, content="lein repl")

    def test_no_code(self):
        assert segment("Some *prose*.") == [ProseSegment(html="<p>Some <em>prose</em>.</p>", source="Some *prose*.")]

    def test_renders_each_span_with_markdown(self):
        segments = segment("# Maps\n```clojure\n{:a 1}\n```\n")
        assert segments[0].html == "<h1>Maps</h1>"
        assert segments[2].html == ""

    def test_unterminated_fence_stays_prose(self):
        segments = segment("Intro\n```clojure\n(+ 1", renderer=_echo)
        assert segments == [ProseSegment(html="<md>Intro\n```clojure\n(+ 1</md>", source="Intro\n```clojure\n(+ 1")]

    def test_hand_off_records(self):
        segments = segment("Hi\n```clojure-noeval\n(def x 1)\n```", renderer=_echo)
        assert [s.to_dict() for s in segments] == [
            {"html": "<md>Hi\n</md>"},
            {"code": {"lang": "clojure", "content": "(def x 1)", "evaluable": False}},
            {"html": "<md></md>"},
        ]
