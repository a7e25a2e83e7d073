import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from learnclj.env import CONTENT_ROOT, CONTENT_EXTENSION, INDEX_PART


ChapterId = str
PartId = str

# gray-matter style front matter: a YAML block fenced by `---` lines at the very top of the file
HEADER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class ContentError(Exception):
    """Base class for problems with the course content."""


class NotFoundError(ContentError):
    """Raised when a chapter/part pair doesn't resolve to a content file."""


class MalformedHeaderError(ContentError):
    """Raised when a content file's header is missing, unparsable, or incomplete."""


class UnreadableDocumentError(ContentError):
    """Raised when a content file exists but can't be read as UTF-8 text."""


class OpenGraphImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class DocumentHeader(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    # Orders pages within a chapter, and chapters within the course
    sequence: int
    og_image: Optional[OpenGraphImage] = Field(default=None, alias="ogImage")


@dataclass(frozen=True)
class Document:
    chapter: ChapterId
    part: PartId
    header: DocumentHeader
    body: str

    @classmethod
    def from_text(cls, chapter: ChapterId, part: PartId, file_content: str) -> Self:
        path = f"{chapter}/{part}"
        match = HEADER_PATTERN.match(file_content)
        if not match:
            raise MalformedHeaderError(f'{path}: expected the file to start with a header fenced by "---" lines')

        try:
            raw_header = yaml.load(match.group(1), Loader=yaml.SafeLoader)
        except yaml.YAMLError as e:
            raise MalformedHeaderError(f"{path}: header is not valid YAML: {e}") from e
        if not isinstance(raw_header, dict):
            raise MalformedHeaderError(f"{path}: header must be a mapping of keys to values, got {raw_header!r}")

        try:
            header = DocumentHeader.model_validate(raw_header)
        except ValidationError as e:
            raise MalformedHeaderError(f"{path}: invalid header: {e}") from e

        return cls(
            chapter=chapter,
            part=part,
            header=header,
            # Trim the blank line(s) separating the header from the body
            body=file_content[match.end() :].lstrip("\r\n"),
        )

    @property
    def path(self) -> str:
        return f"{self.chapter}/{self.part}"

    @property
    def title(self) -> str:
        return self.header.title

    @property
    def sequence(self) -> int:
        return self.header.sequence

    @property
    def is_index(self) -> bool:
        return self.part == INDEX_PART

    def __repr__(self) -> str:
        return f"Document(path={self.path}, title={self.title!r}, sequence={self.sequence})"


@dataclass(frozen=True)
class Chapter:
    index: Document
    parts: tuple[Document, ...]

    @property
    def id(self) -> ChapterId:
        return self.index.chapter

    @property
    def title(self) -> str:
        return self.index.title

    @property
    def sequence(self) -> int:
        return self.index.sequence

    @property
    def pages(self) -> list[Document]:
        return [self.index, *self.parts]


@dataclass(frozen=True)
class ContentTree:
    chapters: tuple[Chapter, ...]

    def pages(self) -> list[Document]:
        """Every page in reading order: each chapter's index, then its parts."""
        return [page for chapter in self.chapters for page in chapter.pages]

    def find(self, chapter: ChapterId, part: PartId = INDEX_PART) -> Document:
        for page in self.pages():
            if page.chapter == chapter and page.part == part:
                return page
        raise NotFoundError(f"No page at {chapter}/{part}")

    def next_page(self, document: Document) -> Optional[Document]:
        pages = self.pages()
        for i, page in enumerate(pages):
            if page.path == document.path:
                return pages[i + 1] if i + 1 < len(pages) else None
        raise NotFoundError(f"{document.path} is not part of the course")


def _is_valid_id(identifier: str) -> bool:
    # Ids come from URLs; they must name a single entry directly below their parent
    return bool(identifier) and not identifier.startswith(".") and "/" not in identifier and "\\" not in identifier


class ContentRepository:
    """Reads course content from a directory with one subdirectory per chapter.

    Nothing is cached: every call goes back to the filesystem.
    """

    def __init__(self, root: Path = CONTENT_ROOT) -> None:
        self.root = root

    def document_path(self, chapter: ChapterId, part: PartId = INDEX_PART) -> Path:
        return self.root / chapter / f"{part}{CONTENT_EXTENSION}"

    def load_document(self, chapter: ChapterId, part: PartId = INDEX_PART) -> Document:
        if not _is_valid_id(chapter) or not _is_valid_id(part):
            raise NotFoundError(f"No page at {chapter}/{part}")
        path = self.document_path(chapter, part)
        if not path.is_file():
            raise NotFoundError(f"No page at {chapter}/{part}: {path} does not exist")
        try:
            # utf-8-sig drops a leading byte order mark, which would otherwise hide the header
            file_content = path.read_text(encoding="utf-8-sig")
        except (UnicodeDecodeError, OSError) as e:
            raise UnreadableDocumentError(f"Could not read {chapter}/{part}: {e}") from e
        return Document.from_text(chapter, part, file_content)

    def discover_all(self) -> list[Document]:
        """Load every content file below the root, in sorted path order.

        A file that can't be read or has a malformed header is reported and skipped; it doesn't
        stop the others from loading.
        """
        if not self.root.is_dir():
            raise NotFoundError(f"Content root {self.root} is not a directory")

        documents = []
        for file in sorted(self.root.rglob(f"*{CONTENT_EXTENSION}")):
            relative_path = file.relative_to(self.root)
            if any(p.startswith(".") for p in relative_path.parts):
                continue
            if len(relative_path.parts) != 2 or not file.is_file():
                print(f"Skipping {relative_path}: content files must sit directly inside a chapter directory")
                continue

            chapter = relative_path.parts[0]
            part = file.name.removesuffix(CONTENT_EXTENSION)
            try:
                documents.append(self.load_document(chapter, part))
            except ContentError as e:
                print(f"Skipping {relative_path}: {e}")
        return documents

    def build_tree(self) -> ContentTree:
        documents_by_chapter: dict[ChapterId, list[Document]] = {}
        for document in self.discover_all():
            documents_by_chapter.setdefault(document.chapter, []).append(document)

        chapters = []
        for chapter_id, documents in documents_by_chapter.items():
            index = next((d for d in documents if d.is_index), None)
            if index is None:
                print(f"Omitting chapter {chapter_id}: it has no loadable {INDEX_PART}{CONTENT_EXTENSION}")
                continue
            # sorted() is stable, so equal sequences keep their discovery order
            parts = sorted((d for d in documents if not d.is_index), key=lambda d: d.sequence)
            chapters.append(Chapter(index=index, parts=tuple(parts)))

        chapters.sort(key=lambda c: c.sequence)
        print(f"Loaded {len(chapters)} chapters from {self.root}")
        return ContentTree(chapters=tuple(chapters))


def write_content_file(root: Path, relative_path: str, title: str, sequence: int, body: str = "") -> Path:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f'---\ntitle: "{title}"\nsequence: {sequence}\n---\n\n{body}', encoding="utf-8")
    return path


class TestDocument:
    def test_from_text(self):
        src = """---
title: "Data Structures"
sequence: 3
ogImage:
  url: /images/data.png
---

Clojure has *persistent* collections.

---

A horizontal rule doesn't end the body.
"""
        document = Document.from_text("data", "readme", src)
        assert document.path == "data/readme"
        assert document.title == "Data Structures"
        assert document.sequence == 3
        assert document.header.og_image == OpenGraphImage(url="/images/data.png")
        assert document.is_index
        assert document.body == (
            "Clojure has *persistent* collections.\n"
            "\n"
            "---\n"
            "\n"
            "A horizontal rule doesn't end the body.\n"
        )

    def test_missing_header(self):
        try:
            Document.from_text("intro", "basics", "# No header here\n")
        except MalformedHeaderError as e:
            assert "intro/basics" in str(e)
        else:
            raise AssertionError("Expected a document without a header to be rejected")

    def test_missing_required_field(self):
        for header in ['title: "Only a title"', "sequence: 1", "title: [unclosed", "- a\n- list", "sequence: first\ntitle: x"]:
            try:
                Document.from_text("intro", "basics", f"---\n{header}\n---\nbody")
            except MalformedHeaderError:
                pass
            else:
                raise AssertionError(f"Expected header {header!r} to be rejected")


class TestContentRepository:
    def test_load_document(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1, "Welcome!\n")
        repository = ContentRepository(tmp_path)
        document = repository.load_document("intro")
        assert document.part == "readme"
        assert document.title == "Intro"
        assert document.body == "Welcome!\n"

    def test_not_found(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        repository = ContentRepository(tmp_path)
        for chapter, part in [("intro", "missing"), ("missing", "readme"), ("..", "readme"), ("intro", "../intro/readme")]:
            try:
                repository.load_document(chapter, part)
            except NotFoundError:
                pass
            else:
                raise AssertionError(f"Expected {chapter}/{part} to be missing")
        # A failed lookup doesn't affect other pages
        assert repository.load_document("intro", "readme").title == "Intro"

    def test_discover_all(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        write_content_file(tmp_path, "intro/basics.md", "Basics", 2)
        write_content_file(tmp_path, "stray.md", "Stray", 9)
        write_content_file(tmp_path, "intro/nested/deep.md", "Deep", 9)
        (tmp_path / "intro" / "broken.md").write_text("no header", encoding="utf-8")
        (tmp_path / "intro" / "notes.txt").write_text("ignored", encoding="utf-8")

        documents = ContentRepository(tmp_path).discover_all()
        assert sorted(d.path for d in documents) == ["intro/basics", "intro/readme"]

    def test_unreadable_file_is_skipped(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        write_content_file(tmp_path, "other/readme.md", "Other", 2)
        (tmp_path / "other" / "bad.md").write_bytes(b"---\ntitle: Bad\nsequence: 1\n---\n\n\xff\xfe broken")

        repository = ContentRepository(tmp_path)
        tree = repository.build_tree()
        assert [c.id for c in tree.chapters] == ["intro", "other"]
        assert tree.chapters[1].parts == ()
        try:
            repository.load_document("other", "bad")
        except UnreadableDocumentError:
            pass
        else:
            raise AssertionError("Expected other/bad to be unreadable")

    def test_byte_order_mark(self, tmp_path):
        (tmp_path / "intro").mkdir()
        (tmp_path / "intro" / "readme.md").write_bytes("---\ntitle: Intro\nsequence: 1\n---\n\nHi\n".encode("utf-8-sig"))
        document = ContentRepository(tmp_path).load_document("intro")
        assert document.title == "Intro"
        assert document.body == "Hi\n"

    def test_build_tree(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        write_content_file(tmp_path, "intro/basics.md", "Basics", 2)

        tree = ContentRepository(tmp_path).build_tree()
        assert len(tree.chapters) == 1
        assert tree.chapters[0].title == "Intro"
        assert [p.title for p in tree.chapters[0].parts] == ["Basics"]

    def test_orders_by_sequence(self, tmp_path):
        write_content_file(tmp_path, "b_functions/readme.md", "Functions", 2)
        write_content_file(tmp_path, "a_syntax/readme.md", "Syntax", 3)
        write_content_file(tmp_path, "c_intro/a_second.md", "Second", 2)
        write_content_file(tmp_path, "c_intro/b_first.md", "First", 1)
        write_content_file(tmp_path, "c_intro/readme.md", "Intro", 0)

        tree = ContentRepository(tmp_path).build_tree()
        assert [c.title for c in tree.chapters] == ["Intro", "Functions", "Syntax"]
        assert [p.title for p in tree.chapters[0].parts] == ["First", "Second"]

    def test_equal_sequences_keep_discovery_order(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 0)
        write_content_file(tmp_path, "intro/zeta.md", "Zeta", 1)
        write_content_file(tmp_path, "intro/alpha.md", "Alpha", 1)
        write_content_file(tmp_path, "intro/mid.md", "Mid", 1)
        write_content_file(tmp_path, "other/readme.md", "Other", 0)

        repository = ContentRepository(tmp_path)
        discovered = [d.part for d in repository.discover_all() if d.chapter == "intro" and not d.is_index]
        tree = repository.build_tree()
        assert [p.part for p in tree.chapters[0].parts] == discovered
        assert [c.id for c in tree.chapters] == ["intro", "other"]

    def test_chapter_without_index_is_omitted(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        write_content_file(tmp_path, "orphan/lonely.md", "Lonely", 1)
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken" / "readme.md").write_text("---\ntitle: Broken\n---\n", encoding="utf-8")
        write_content_file(tmp_path, "broken/part.md", "Part", 1)

        tree = ContentRepository(tmp_path).build_tree()
        assert [c.id for c in tree.chapters] == ["intro"]

    def test_missing_root(self, tmp_path):
        try:
            ContentRepository(tmp_path / "nope").build_tree()
        except NotFoundError:
            pass
        else:
            raise AssertionError("Expected a missing content root to be rejected")


class TestContentTree:
    def test_navigation(self, tmp_path):
        write_content_file(tmp_path, "intro/readme.md", "Intro", 1)
        write_content_file(tmp_path, "intro/basics.md", "Basics", 1)
        write_content_file(tmp_path, "data/readme.md", "Data", 2)

        tree = ContentRepository(tmp_path).build_tree()
        assert [p.path for p in tree.pages()] == ["intro/readme", "intro/basics", "data/readme"]
        basics = tree.find("intro", "basics")
        assert tree.next_page(tree.find("intro")) == basics
        assert tree.next_page(basics).path == "data/readme"
        assert tree.next_page(tree.find("data")) is None
        try:
            tree.find("data", "missing")
        except NotFoundError:
            pass
        else:
            raise AssertionError("Expected data/missing to be missing")
