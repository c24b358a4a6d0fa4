"""Pytest configuration and shared fixtures for cleancut tests."""

from pathlib import Path

import pytest
from bs4 import Tag

from cleancut.models import ExtractedArticle


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Pure logic tests with no I/O")
    config.addinivalue_line("markers", "integration: Tests that run the full clip flow or touch the filesystem")
    config.addinivalue_line(
        "markers",
        "e2e: End-to-end tests through the installed command-line entry point",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """
    Apply default markers to tests without explicit markers.

    Tests should use explicit markers (@pytest.mark.unit, @pytest.mark.integration).
    Unmarked tests default to unit.
    """
    for item in items:
        # Skip if already has a category marker
        markers = list(item.iter_markers())
        marker_names = [m.name for m in markers]
        if any(m in marker_names for m in ("unit", "integration", "e2e")):
            continue

        # Default unmarked tests to unit
        item.add_marker(pytest.mark.unit)


# Page fixtures

ARTICLE_PARAGRAPHS = [
    "Sourdough starts with a culture of wild yeast and lactic acid bacteria living in a simple mix of flour and "
    "water. Feeding it on a regular schedule keeps the culture active and predictable, which matters far more "
    "than the brand of flour you buy.",
    "Most home bakers keep their starter in the fridge between bakes. Two days before baking, take it out, "
    "discard half, and feed it twice a day until it reliably doubles in size within six hours of a feeding.",
    "The dough itself needs only flour, water and salt. Mix the flour and water first and let them rest for an "
    "hour; this autolyse step lets the flour hydrate fully and makes the later folds much easier to handle.",
    "Bulk fermentation is where the flavour develops. Instead of kneading, give the dough a set of stretches and "
    "folds every thirty minutes for the first two hours, then leave it alone until it has grown by about half.",
    "Shape the loaf gently so you keep the gas you have built up, then let it proof overnight in the fridge. The "
    "long cold proof deepens the sour flavour and firms the dough so it is easier to score before baking.",
    "Bake in a preheated covered pot for twenty minutes so the steam can expand the loaf, then uncover it and "
    "bake for another twenty five minutes until the crust is deeply browned and the base sounds hollow.",
]

FIELD_NOTE_PARAGRAPHS = [
    "House sparrows have lived alongside people for thousands of years and are still the most common bird on "
    "the rooftops of the old town, where gaps under the tiles give them safe places to raise their young.",
    "Feral pigeons gather on the station forecourt every morning. They descend from rock doves that once nested "
    "on sea cliffs, which is why the ledges of tall buildings suit them so well as roosting sites today.",
    "Peregrine falcons returned to the cathedral tower three years ago. Volunteers now watch the nest through a "
    "camera, and the pair has raised a full brood of chicks every spring since they first arrived there.",
    "Blackbirds sing from television aerials at dusk, and their song carries remarkably well over traffic noise. "
    "Studies suggest city blackbirds sing at a higher pitch than their country cousins to be heard clearly.",
    "Swifts arrive in early May and spend almost their entire lives on the wing. They only land to nest, so the "
    "loss of old buildings with open eaves has hit their numbers hard in many towns across the region.",
]

README_PARAGRAPHS = [
    "widget-kit is a small toolkit for building dashboard widgets from plain configuration files. It takes care "
    "of layout, refresh scheduling and theming so that each widget only has to describe the data it shows.",
    "Widgets are declared in a single YAML file. Each entry names a data source, a refresh interval and a "
    "renderer, and the toolkit validates the whole file on startup so configuration errors surface early.",
    "Data sources are plugins. The toolkit ships with sources for HTTP endpoints, SQL queries and local files, "
    "and new sources can be registered through a standard entry point without modifying the toolkit itself.",
    "Rendering is handled by small template functions that receive the latest data and return markup. Templates "
    "are pure functions, which keeps them easy to test and lets the scheduler cache their output safely.",
    "The project is released under the MIT license. Contributions are welcome; please open an issue to discuss "
    "larger changes before sending a pull request so we can agree on the design together with you first.",
]

REDDIT_PARAGRAPHS = [
    "I have been baking for about a year now, mostly sandwich loaves and the occasional focaccia, and I want to "
    "branch out into something more challenging over the winter months when I have more free time at home.",
    "So far my favourite has been a simple country loaf with a little whole wheat flour mixed in, but I keep "
    "reading about rye breads and enriched doughs like brioche and I cannot decide where to start next.",
    "What is the bread you enjoy baking the most, and what would you recommend to someone who is comfortable "
    "with basic techniques but has never tried a really wet dough or a long fermentation schedule before?",
]


def _paragraphs(texts: list[str]) -> str:
    return "\n".join(f"<p>{text}</p>" for text in texts)


@pytest.fixture
def article_html() -> str:
    """A blog post inside <article>, surrounded by typical site chrome."""
    return f"""<!DOCTYPE html>
<html>
<head>
<title>How to Bake Sourdough | The Crumb Blog</title>
<meta name="description" content="A practical guide to baking sourdough at home.">
<meta name="author" content="Jane Baker">
</head>
<body>
<nav class="navbar"><a href="/">Home</a> <a href="/recipes">Recipes</a> <a href="/about">About</a></nav>
<div class="cookie-banner">We use cookies to improve your experience. <button>Accept</button></div>
<article class="post">
<h1>How to Bake Sourdough</h1>
{_paragraphs(ARTICLE_PARAGRAPHS)}
<h2>What you need</h2>
<ul><li>Strong white flour</li><li>Water</li><li>Salt</li></ul>
<div style="display:none">Hidden tracking text that should never appear.</div>
<p>Read more about <a href="/guides/starter">keeping a starter healthy</a>.</p>
</article>
<aside class="sidebar"><h3>Popular posts</h3>
<ul><li><a href="/a">Focaccia</a></li><li><a href="/b">Bagels</a></li><li><a href="/c">Rye</a></li></ul>
</aside>
<footer class="site-footer"><p>Copyright 2026 The Crumb Blog</p></footer>
<script>window.analytics = true;</script>
</body>
</html>"""


@pytest.fixture
def no_semantic_html() -> str:
    """An article laid out with plain divs only, next to a link-heavy sidebar."""
    links = "".join(f'<li><a href="/archive/{i}">Archive {i}</a></li>' for i in range(1, 9))
    return f"""<html>
<head><title>Field Notes</title></head>
<body>
<div class="wrapper">
<div class="top-links"><a href="/">Home</a> <a href="/archive">Archive</a></div>
<div id="content" class="post-body">
<h1>Field Notes on Urban Birds</h1>
{_paragraphs(FIELD_NOTE_PARAGRAPHS)}
</div>
<div class="sidebar-links"><ul>{links}</ul></div>
</div>
</body>
</html>"""


@pytest.fixture
def technical_html() -> str:
    """An API reference page dominated by highlighted code blocks."""
    return """<html>
<head><title>Client API Reference</title></head>
<body>
<header class="page-header"><a href="/">Docs home</a></header>
<div class="toc"><a href="#get">get()</a> <a href="#post">post()</a></div>
<div class="docs-content">
<h1>Client API Reference</h1>
<p>The client wraps a connection pool and exposes one method per HTTP verb.</p>
<h2>Client.get(url, params=None)</h2>
<p>Send a GET request.</p>
<pre><code class="language-python">client = Client("https://api.example.com")
response = client.get("/users", params={"page": 2})
for user in response.json():
    print(user["name"])</code></pre>
<h2>Parameters</h2>
<ul><li>url: path relative to the base URL</li><li>params: query string values</li></ul>
<pre><code class="language-python">response = client.post("/users", json={"name": "Ada"})
assert response.status_code == 201</code></pre>
<a class="headerlink" href="#parameters">¶</a>
</div>
</body>
</html>"""


@pytest.fixture
def reddit_html() -> str:
    """A Reddit thread rendered with shreddit web components."""
    return f"""<html>
<head><title>What is your favourite bread to bake? : r/Breadit</title></head>
<body>
<shreddit-app>
<shreddit-post author="crumbfan">
<shreddit-title><h1 slot="title">What is your favourite bread to bake at home?</h1></shreddit-title>
<shreddit-post-text-body><div id="t3_abc123-post-rtjson-content">{_paragraphs(REDDIT_PARAGRAPHS)}</div></shreddit-post-text-body>
<button>Share</button>
</shreddit-post>
<shreddit-comment-tree>
<shreddit-comment author="loafer" depth="0"><div slot="comment"><p>Start with a rye and caraway loaf. It is forgiving and tastes amazing toasted with butter.</p></div><button>Reply</button></shreddit-comment>
<shreddit-comment author="crumbfan" depth="1"><div slot="comment"><p>Thanks, I have some caraway seeds already so that sounds like a plan for the weekend.</p></div></shreddit-comment>
<shreddit-comment author="lurker" depth="0"><div slot="comment"><p>Share</p></div></shreddit-comment>
</shreddit-comment-tree>
<aside slot="sidebar">Community rules and moderators</aside>
</shreddit-app>
</body>
</html>"""


@pytest.fixture
def github_html() -> str:
    """A GitHub repository page with a rendered README."""
    return f"""<html>
<head><title>acme/widget-kit: Dashboard widgets from config files</title></head>
<body>
<div class="Header"><a href="/">GitHub</a> <a href="/pulls">Pull requests</a></div>
<div id="readme">
<article class="markdown-body entry-content">
<h1><a class="anchor" href="#widget-kit"></a>widget-kit</h1>
{_paragraphs(README_PARAGRAPHS)}
<h2>Installation</h2>
<pre><code>pip install widget-kit</code></pre>
</article>
</div>
</body>
</html>"""


@pytest.fixture
def html_file(tmp_path: Path, article_html: str) -> Path:
    """Write the article page to a temporary file.

    Args:
        tmp_path: Pytest temporary directory.
        article_html: Article page markup.

    Returns:
        Path to created HTML file.
    """
    path = tmp_path / "page.html"
    path.write_text(article_html, encoding="utf-8")
    return path


# Collaborator fakes


class RecordingExtractor:
    """External extractor fake that records calls and returns a fixed article."""

    name = "recording"

    def __init__(self, article: ExtractedArticle | None = None) -> None:
        self.article = article
        self.calls: list[str] = []

    def extract(self, document: Tag, url: str = "") -> ExtractedArticle | None:
        self.calls.append(url)
        return self.article


class FailingExtractor:
    """External extractor fake that always raises."""

    name = "failing"

    def extract(self, document: Tag, url: str = "") -> ExtractedArticle | None:
        raise RuntimeError("extractor exploded")


class StepClock:
    """Monotonic clock fake advancing a fixed step on every call."""

    def __init__(self, step_seconds: float) -> None:
        self.step_seconds = step_seconds
        self.now = 0.0

    def __call__(self) -> float:
        current = self.now
        self.now += self.step_seconds
        return current


@pytest.fixture
def null_extractor() -> RecordingExtractor:
    """External extractor that never finds an article."""
    return RecordingExtractor()


@pytest.fixture
def failing_extractor() -> FailingExtractor:
    return FailingExtractor()


@pytest.fixture
def make_extractor():
    """Factory for recording extractors returning a given article."""
    return RecordingExtractor


@pytest.fixture
def make_clock():
    """Factory for stepping clocks."""
    return StepClock
