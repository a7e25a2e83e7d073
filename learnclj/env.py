from pathlib import Path

ROOT_FOLDER = Path(__file__).parents[1]
CONTENT_ROOT = ROOT_FOLDER / "_chapters"
GENERATED_SITE_DIR = ROOT_FOLDER / "generated-site"

SITE_NAME = "Learn Clojure"
# The landing page of every chapter directory
INDEX_PART = "readme"
CONTENT_EXTENSION = ".md"
# ```clojure-noeval marks a block as display-only
NON_RUNNABLE_SUFFIX = "-noeval"
