from dataclasses import dataclass
from enum import Enum, auto
from typing import Self

Cursor = int

FENCE = "```"


class TokenType(Enum):
    EOF = (auto(),)
    Text = (auto(),)
    Fence = (auto(),)


@dataclass
class Token:
    type: TokenType
    value: str
    start_pos: int
    end_pos: int

    @classmethod
    def eof(cls, text_len: int) -> Self:
        return cls(
            type=TokenType.EOF,
            value="",
            start_pos=text_len,
            end_pos=text_len,
        )


class Lexer:
    """Splits markdown into fence delimiters and the text between them.

    Fences are located by index in a single left-to-right pass, so no placeholder
    text is ever substituted into the document.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.cursor: Cursor = 0

    def _consume_token(self) -> Token:
        if self.cursor >= len(self.text):
            return Token.eof(len(self.text))

        start_pos = self.cursor
        if self.text.startswith(FENCE, start_pos):
            return Token(type=TokenType.Fence, value=FENCE, start_pos=start_pos, end_pos=start_pos + len(FENCE))

        # Everything up to the next fence (or the end of the text) is one run of text
        end_pos = self.text.find(FENCE, start_pos)
        if end_pos == -1:
            end_pos = len(self.text)
        return Token(type=TokenType.Text, value=self.text[start_pos:end_pos], start_pos=start_pos, end_pos=end_pos)

    def next(self) -> Token:
        token = self._consume_token()
        self.cursor = token.end_pos
        return token

    def peek(self) -> Token:
        return self.peek_n(1)[0]

    def peek_n(self, n: int) -> list[Token]:
        start_cursor = self.cursor
        tokens = [self.next() for _ in range(n)]
        self.cursor = start_cursor
        return tokens


class TestLexer:
    def test(self):
        text = "Intro `inline`\n```clojure\n(+ 1 2)\n```\ndone"
        lexer = Lexer(text)
        assert lexer.peek() == Token(TokenType.Text, "Intro `inline`\n", 0, 15)
        assert lexer.peek() == Token(TokenType.Text, "Intro `inline`\n", 0, 15)
        assert lexer.next() == Token(TokenType.Text, "Intro `inline`\n", 0, 15)
        assert lexer.next() == Token(TokenType.Fence, "```", 15, 18)
        assert lexer.next() == Token(TokenType.Text, "clojure\n(+ 1 2)\n", 18, 34)
        assert lexer.next() == Token(TokenType.Fence, "```", 34, 37)
        assert lexer.peek() == Token(TokenType.Text, "\ndone", 37, 42)
        assert lexer.next() == Token(TokenType.Text, "\ndone", 37, 42)
        assert lexer.peek() == Token(TokenType.EOF, "", 42, 42)
        assert lexer.next() == Token(TokenType.EOF, "", 42, 42)
        assert lexer.next() == Token(TokenType.EOF, "", 42, 42)

    def test_adjacent_fences(self):
        lexer = Lexer("``````")
        assert [t.type for t in lexer.peek_n(3)] == [TokenType.Fence, TokenType.Fence, TokenType.EOF]
        assert lexer.next() == Token(TokenType.Fence, "```", 0, 3)
        assert lexer.next() == Token(TokenType.Fence, "```", 3, 6)
        assert lexer.next().type == TokenType.EOF

    def test_empty(self):
        lexer = Lexer("")
        assert lexer.next() == Token(TokenType.EOF, "", 0, 0)
