import pytest

from ragcrawl.core.extractor import ContentExtractor


@pytest.fixture
def extractor():
    return ContentExtractor()


def test_title_prefers_title_tag(extractor):
    page = extractor.extract_html(
        "<html><head><title> Guide  Title </title></head><body><h1>Heading</h1><p>Body</p></body></html>",
        "https://a.test/",
    )
    assert page.title == "Guide Title"


def test_title_falls_back_to_h1_then_untitled(extractor):
    assert extractor.extract_html("<body><h1>Only Heading</h1></body>", "https://a.test/").title == "Only Heading"
    assert extractor.extract_html("<body><p>No headings</p></body>", "https://a.test/").title == "Untitled"


def test_main_container_is_preferred_and_boilerplate_removed(extractor):
    html = """
    <html><body>
      <header>Site header</header>
      <nav><a href="/x">Nav link</a></nav>
      <main>
        <h1>Install</h1>
        <p>Run   the
           installer.</p>
        <div class="cookie-banner">Accept cookies</div>
        <script>var x = 1;</script>
      </main>
      <footer>Footer text</footer>
    </body></html>
    """
    page = extractor.extract_html(html, "https://a.test/install")
    assert page.text == "Install Run the installer."
    assert page.url == "https://a.test/install"


def test_article_used_when_no_main(extractor):
    html = "<body><div>Outside</div><article><p>Inside article</p></article></body>"
    assert extractor.extract_html(html, "https://a.test/").text == "Inside article"


def test_body_used_without_content_container(extractor):
    html = "<body><aside>Sidebar</aside><p>Plain body text</p></body>"
    assert extractor.extract_html(html, "https://a.test/").text == "Plain body text"


def test_headings_in_document_order_non_empty_only(extractor):
    html = "<body><h2>Second level</h2><h1>Top</h1><h3>  </h3><h6>Deep</h6></body>"
    assert extractor.extract_html(html, "https://a.test/").headings == ["Second level", "Top", "Deep"]


def test_malformed_html_degrades_to_defaults(extractor):
    page = extractor.extract_html("<html><body><div><p>unclosed", "https://a.test/")
    assert page.title == "Untitled"
    assert page.text == "unclosed"
    assert page.headings == []

    empty = extractor.extract_html("", "https://a.test/")
    assert empty.title == "Untitled"
    assert empty.text == ""
