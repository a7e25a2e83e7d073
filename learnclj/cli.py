import argparse
import json
from pathlib import Path

from learnclj.chapter import ContentRepository, NotFoundError, write_content_file
from learnclj.env import CONTENT_ROOT, GENERATED_SITE_DIR, INDEX_PART
from learnclj.hot_reload import watch
from learnclj.render import segment
from learnclj.site import build_site


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="learnclj", description="Build the Learn Clojure course site")
    parser.add_argument("--content-root", type=Path, default=CONTENT_ROOT)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="render every page to static HTML")
    build_parser.add_argument("output_dir", type=Path, nargs="?", default=GENERATED_SITE_DIR)

    watch_parser = subparsers.add_parser("watch", help="rebuild whenever the content changes")
    watch_parser.add_argument("output_dir", type=Path, nargs="?", default=GENERATED_SITE_DIR)

    segments_parser = subparsers.add_parser("segments", help="print one page's content blocks as JSON")
    segments_parser.add_argument("chapter")
    segments_parser.add_argument("part", nargs="?", default=INDEX_PART)

    args = parser.parse_args(argv)
    repository = ContentRepository(args.content_root)

    if args.command == "build":
        written = build_site(repository, args.output_dir)
        print(f"Wrote {len(written)} files to {args.output_dir}")
    elif args.command == "watch":
        watch(repository, args.output_dir)
    elif args.command == "segments":
        try:
            document = repository.load_document(args.chapter, args.part)
        except NotFoundError as e:
            print(f"Page not found: {e}")
            return 1
        print(json.dumps([s.to_dict() for s in segment(document.body)], indent=2))
    return 0


class TestCli:
    def test_build(self, tmp_path):
        write_content_file(tmp_path / "content", "intro/readme.md", "Intro", 1, "Hello\n")
        exit_code = main(["--content-root", str(tmp_path / "content"), "build", str(tmp_path / "out")])
        assert exit_code == 0
        assert (tmp_path / "out" / "intro" / "readme" / "index.html").exists()

    def test_segments(self, tmp_path, capsys):
        write_content_file(tmp_path, "intro/basics.md", "Basics", 2, "Run:\n```clojure\n(inc 1)\n```\n")
        assert main(["--content-root", str(tmp_path), "segments", "intro", "basics"]) == 0
        records = json.loads(capsys.readouterr().out)
        assert records == [
            {"html": "<p>Run:</p>"},
            {"code": {"lang": "clojure", "content": "(inc 1)", "evaluable": True}},
            {"html": ""},
        ]

    def test_segments_not_found(self, tmp_path, capsys):
        assert main(["--content-root", str(tmp_path), "segments", "intro", "nope"]) == 1
        assert "Page not found" in capsys.readouterr().out


if __name__ == "__main__":
    raise SystemExit(main())
