import re
from dataclasses import dataclass

from learnclj.env import NON_RUNNABLE_SUFFIX
from learnclj.lexer import TokenType, Lexer, Token


# Lowercase letters directly after the opening fence, optionally marked as non-runnable
FENCE_INFO_PATTERN = re.compile(rf"[a-z]*(?:{re.escape(NON_RUNNABLE_SUFFIX)})?")


class MalformedFenceError(ValueError):
    """Raised when a code fence is opened but never closed."""


@dataclass
class FencedBlock:
    # Language tag exactly as written, e.g. "clojure" or "clojure-noeval"
    info: str
    # Everything between the tag and the closing fence, untrimmed
    content: str
    start_pos: int
    end_pos: int

    @property
    def is_evaluable(self) -> bool:
        return not self.info.endswith(NON_RUNNABLE_SUFFIX)

    @property
    def language(self) -> str:
        if self.is_evaluable:
            return self.info
        return self.info.removesuffix(NON_RUNNABLE_SUFFIX)


class MarkdownParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.lexer = Lexer(text)

    def read_tokens_until(self, break_on_type: TokenType) -> list[Token]:
        tokens = []
        while True:
            next_tok = self.lexer.peek()
            if next_tok.type in [break_on_type, TokenType.EOF]:
                break
            tokens.append(self.lexer.next())
        return tokens

    def read_text_until_fence(self) -> str:
        tokens = self.read_tokens_until(TokenType.Fence)
        return "".join(t.value for t in tokens)

    def expect(self, token_type: TokenType) -> Token:
        next_tok = self.lexer.next()
        if next_tok.type != token_type:
            raise RuntimeError(f"Expected {token_type}, but found {next_tok}")
        return next_tok

    def parse_fenced_block(self) -> FencedBlock:
        opening_fence = self.expect(TokenType.Fence)
        inner_text = self.read_text_until_fence()
        if self.lexer.peek().type != TokenType.Fence:
            raise MalformedFenceError(f"Code fence opened at offset {opening_fence.start_pos} is never closed")
        closing_fence = self.expect(TokenType.Fence)

        info = FENCE_INFO_PATTERN.match(inner_text).group(0)
        return FencedBlock(
            info=info,
            content=inner_text[len(info) :],
            start_pos=opening_fence.start_pos,
            end_pos=closing_fence.end_pos,
        )


class TestMarkdownParser:
    def test(self):
        source = """Let's evaluate something.

```clojure
(+ 1 2)
```
"""
        parser = MarkdownParser(source)
        assert parser.read_text_until_fence() == "Let's evaluate something.\n\n"

        block = parser.parse_fenced_block()
        assert block == FencedBlock(info="clojure", content="\n(+ 1 2)\n", start_pos=27, end_pos=49)
        assert block.language == "clojure"
        assert block.is_evaluable
        assert parser.read_text_until_fence() == "\n"
        assert parser.lexer.peek().type == TokenType.EOF

    def test_non_runnable(self):
        parser = MarkdownParser("```clojure-noeval\n(defn f [x] x)\n```")
        block = parser.parse_fenced_block()
        assert block.info == "clojure-noeval"
        assert block.language == "clojure"
        assert not block.is_evaluable
        assert block.content == "\n(defn f [x] x)\n"

    def test_missing_language_tag(self):
        parser = MarkdownParser("```\n(println \"hi\")\n```")
        block = parser.parse_fenced_block()
        assert block.info == ""
        assert block.language == ""
        assert block.is_evaluable

    def test_tag_is_lowercase_letters_only(self):
        parser = MarkdownParser("```Clojure (inc 1)```")
        block = parser.parse_fenced_block()
        assert block.info == ""
        assert block.content == "Clojure (inc 1)"

        parser = MarkdownParser("```clojure {:title \"x\"}\n1```")
        block = parser.parse_fenced_block()
        assert block.info == "clojure"
        assert block.content == " {:title \"x\"}\n1"

    def test_unterminated_fence(self):
        parser = MarkdownParser("```clojure\n(+ 1 2)\n")
        try:
            parser.parse_fenced_block()
        except MalformedFenceError as e:
            assert "offset 0" in str(e)
        else:
            raise AssertionError("Expected an unterminated fence to be rejected")
