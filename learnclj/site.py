import html
import json
import shutil
from pathlib import Path

from learnclj.chapter import ContentRepository, ContentTree, Document, write_content_file
from learnclj.env import SITE_NAME
from learnclj.render import segment, render_markdown, MarkdownRenderer, Segment, ProseSegment, CodeSegment


def page_url(document: Document) -> str:
    return f"/{document.chapter}/{document.part}/"


def page_title(document: Document) -> str:
    return f"{document.title} | {SITE_NAME}"


def page_metadata(document: Document) -> dict:
    og_image = document.header.og_image
    return {
        "title": page_title(document),
        "og_image": og_image.url if og_image else "",
    }


def static_params(tree: ContentTree) -> list[tuple[str, str]]:
    """The (chapter, part) pair of every page that gets built."""
    return [(page.chapter, page.part) for page in tree.pages()]


def render_nav(tree: ContentTree) -> str:
    out = "<ul>\n"
    for chapter in tree.chapters:
        out += f'<li><a href="{page_url(chapter.index)}">{html.escape(chapter.title)}</a>\n'
        out += '<ul class="parts">\n'
        for part in chapter.parts:
            out += f'<li><a href="{page_url(part)}">{html.escape(part.title)}</a></li>\n'
        out += "</ul>\n"
        out += "</li>\n"
    out += "</ul>\n"
    return out


def render_segments(segments: list[Segment]) -> str:
    out = str()
    for s in segments:
        match s:
            case ProseSegment(rendered_html, _):
                out += rendered_html
            case CodeSegment(language, evaluable, content):
                # Mount point for the code widget, which owns everything past this markup
                evaluable_attr = "true" if evaluable else "false"
                out += f'<pre class="code-block" data-lang="{html.escape(language)}" data-evaluable="{evaluable_attr}">'
                out += f"<code>{html.escape(content)}</code></pre>\n"
    return out


def _render_layout(title: str, og_image: str, nav: str, main: str) -> str:
    out = "<!DOCTYPE html>\n"
    out += "<html>\n<head>\n"
    out += '<meta charset="utf-8">\n'
    out += f"<title>{html.escape(title)}</title>\n"
    out += f'<meta property="og:title" content="{html.escape(title)}">\n'
    if og_image:
        out += f'<meta property="og:image" content="{html.escape(og_image)}">\n'
    out += "</head>\n<body>\n"
    out += f"<nav>\n{nav}</nav>\n"
    out += f"<main>\n{main}</main>\n"
    out += "</body>\n</html>\n"
    return out


def render_page(tree: ContentTree, document: Document, segments: list[Segment]) -> str:
    main = f"<h1>{html.escape(document.title)}</h1>\n"
    main += render_segments(segments)
    next_page = tree.next_page(document)
    if next_page:
        main += f'<div class="next"><a href="{page_url(next_page)}">Next &gt;</a></div>\n'

    metadata = page_metadata(document)
    return _render_layout(metadata["title"], metadata["og_image"], render_nav(tree), main)


def render_not_found(tree: ContentTree) -> str:
    main = "<h1>Page not found</h1>\n"
    main += "<p>This page doesn't exist. Pick a chapter from the list instead.</p>\n"
    return _render_layout(f"Page not found | {SITE_NAME}", "", render_nav(tree), main)


def _remove_stale_pages(output_dir: Path, pages: list[tuple[str, str]]) -> None:
    if not output_dir.is_dir():
        return
    for page_file in list(output_dir.glob("*/*/index.html")):
        page_dir = page_file.parent
        if (page_dir.parent.name, page_dir.name) not in pages:
            shutil.rmtree(page_dir)
            print(f"Removed stale page {page_dir.relative_to(output_dir).as_posix()}")
    for chapter_dir in output_dir.iterdir():
        if chapter_dir.is_dir() and not any(chapter_dir.iterdir()):
            chapter_dir.rmdir()


def build_site(repository: ContentRepository, output_dir: Path, renderer: MarkdownRenderer = render_markdown) -> list[Path]:
    tree = repository.build_tree()
    pages = static_params(tree)
    _remove_stale_pages(output_dir, pages)
    written = []
    for chapter, part in pages:
        document = tree.find(chapter, part)
        page_dir = output_dir / chapter / part
        page_dir.mkdir(parents=True, exist_ok=True)

        segments = segment(document.body, renderer=renderer)
        page_file = page_dir / "index.html"
        page_file.write_text(render_page(tree, document, segments), encoding="utf-8")
        # The same blocks the page shows, for widgets that want to build the page themselves
        content_file = page_dir / "content.json"
        records = [s.to_dict() for s in segments]
        content_file.write_text(json.dumps(records, indent=2), encoding="utf-8")
        written.extend([page_file, content_file])
        print(f"Rendered {document.path}")

    output_dir.mkdir(parents=True, exist_ok=True)
    not_found_file = output_dir / "404.html"
    not_found_file.write_text(render_not_found(tree), encoding="utf-8")
    written.append(not_found_file)
    return written


def _make_course(root: Path) -> ContentTree:
    (root / "intro").mkdir(parents=True)
    (root / "intro" / "readme.md").write_text(
        "---\ntitle: Intro\nsequence: 1\nogImage:\n  url: /img/intro.png\n---\n\nWelcome to *Clojure*.\n",
        encoding="utf-8",
    )
    write_content_file(
        root,
        "intro/basics.md",
        "Basics & Syntax",
        2,
        "Try this:\n\n```clojure\n(str \"<b>\" 1)\n```\n\nBut not this:\n\n```clojure-noeval\n(shutdown-agents)\n```\n",
    )
    return ContentRepository(root).build_tree()


class TestSite:
    def test_metadata(self, tmp_path):
        tree = _make_course(tmp_path)
        intro = tree.find("intro")
        assert page_title(intro) == "Intro | Learn Clojure"
        assert page_metadata(intro) == {"title": "Intro | Learn Clojure", "og_image": "/img/intro.png"}
        assert page_metadata(tree.find("intro", "basics"))["og_image"] == ""
        assert static_params(tree) == [("intro", "readme"), ("intro", "basics")]

    def test_nav(self, tmp_path):
        tree = _make_course(tmp_path)
        nav = render_nav(tree)
        assert '<a href="/intro/readme/">Intro</a>' in nav
        assert '<a href="/intro/basics/">Basics &amp; Syntax</a>' in nav

    def test_render_page(self, tmp_path):
        tree = _make_course(tmp_path)
        basics = tree.find("intro", "basics")
        page = render_page(tree, basics, segment(basics.body))
        assert "<title>Basics &amp; Syntax | Learn Clojure</title>" in page
        assert "<h1>Basics &amp; Syntax</h1>" in page
        assert "<p>Try this:</p>" in page
        assert (
            '<pre class="code-block" data-lang="clojure" data-evaluable="true">'
            "<code>(str &quot;&lt;b&gt;&quot; 1)</code></pre>"
        ) in page
        assert '<pre class="code-block" data-lang="clojure" data-evaluable="false"><code>(shutdown-agents)</code></pre>' in page
        # The last page has nowhere to go
        assert "Next &gt;" not in page

        intro = tree.find("intro")
        intro_page = render_page(tree, intro, segment(intro.body))
        assert '<a href="/intro/basics/">Next &gt;</a>' in intro_page
        assert '<meta property="og:image" content="/img/intro.png">' in intro_page

    def test_build_site(self, tmp_path):
        _make_course(tmp_path / "content")
        output_dir = tmp_path / "out"
        written = build_site(ContentRepository(tmp_path / "content"), output_dir)

        assert sorted(p.relative_to(output_dir).as_posix() for p in written) == [
            "404.html",
            "intro/basics/content.json",
            "intro/basics/index.html",
            "intro/readme/content.json",
            "intro/readme/index.html",
        ]
        records = json.loads((output_dir / "intro" / "basics" / "content.json").read_text(encoding="utf-8"))
        assert records[1] == {"code": {"lang": "clojure", "content": '(str "<b>" 1)', "evaluable": True}}
        assert records[3] == {"code": {"lang": "clojure", "content": "(shutdown-agents)", "evaluable": False}}
        assert len(records) == 5
        assert "Page not found" in (output_dir / "404.html").read_text(encoding="utf-8")

    def test_rebuild_removes_deleted_pages(self, tmp_path):
        content_root = tmp_path / "content"
        write_content_file(content_root, "intro/readme.md", "Intro", 1)
        old_part = write_content_file(content_root, "intro/old.md", "Old", 1)
        write_content_file(content_root, "gone/readme.md", "Gone", 2)
        output_dir = tmp_path / "out"
        (output_dir / "assets").mkdir(parents=True)
        (output_dir / "assets" / "site.css").write_text("body {}", encoding="utf-8")

        repository = ContentRepository(content_root)
        build_site(repository, output_dir)
        assert (output_dir / "intro" / "old" / "index.html").exists()

        old_part.unlink()
        shutil.rmtree(content_root / "gone")
        build_site(repository, output_dir)
        assert not (output_dir / "intro" / "old").exists()
        assert not (output_dir / "gone").exists()
        assert (output_dir / "intro" / "readme" / "index.html").exists()
        # Files the build doesn't own are left alone
        assert (output_dir / "assets" / "site.css").exists()

    def test_build_renders_each_span_once(self, tmp_path):
        write_content_file(tmp_path / "content", "intro/readme.md", "Intro", 1, "a\n```clojure\n1\n```\nb\n")
        rendered = []

        def counting_renderer(text: str) -> str:
            rendered.append(text)
            return render_markdown(text)

        build_site(ContentRepository(tmp_path / "content"), tmp_path / "out", renderer=counting_renderer)
        assert rendered == ["a\n", "\nb\n"]
