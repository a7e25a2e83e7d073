from learnclj.env import CONTENT_ROOT, GENERATED_SITE_DIR, ROOT_FOLDER
from learnclj.chapter import (
    ContentRepository, ContentTree, Chapter, Document, ContentError, NotFoundError, MalformedHeaderError,
)
from learnclj.render import segment, render_markdown, ProseSegment, CodeSegment
from learnclj.site import build_site


def main():
    build_site(ContentRepository(CONTENT_ROOT), GENERATED_SITE_DIR)


if __name__ == "__main__":
    main()
