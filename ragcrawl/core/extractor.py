import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from ragcrawl.models.document import PageRecord
from ragcrawl.utils.text_utils import collapse_whitespace

logger = logging.getLogger(__name__)

# Most specific first
CONTENT_SELECTORS = [
    "main",
    '[role="main"]',
    ".main-content",
    "#main-content",
    "article",
]

BOILERPLATE_SELECTORS = [
    "nav",
    "header",
    "footer",
    "aside",
    "script",
    "style",
    "noscript",
    ".navigation",
    ".nav",
    ".sidebar",
    ".ads, #ads",
    ".advertisement, #advertisement, .ad-banner, .ad-container",
    ".cookie-notice, #cookie-notice, .cookie-banner, #cookie-banner",
    ".popup",
    ".modal",
    "title",
]

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


class ContentExtractor:
    """
    Turns an HTML document into a title, heading list and cleaned body text.
    Never raises for missing elements; every field degrades to its default.
    """
    def parse(self, html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "html.parser")

    def extract_title(self, soup: BeautifulSoup) -> str:
        for tag_name in ("title", "h1"):
            tag = soup.find(tag_name)
            if tag is not None:
                text = collapse_whitespace(tag.get_text(" "))
                if text:
                    return text
        return "Untitled"

    def extract_headings(self, soup: BeautifulSoup) -> List[str]:
        headings = (collapse_whitespace(tag.get_text(" ")) for tag in soup.find_all(HEADING_TAGS))
        return [h for h in headings if h]

    def select_container(self, soup: BeautifulSoup) -> Optional[Tag]:
        for selector in CONTENT_SELECTORS:
            container = soup.select_one(selector)
            if container is not None:
                return container
        return soup.body or soup

    def extract_text(self, soup: BeautifulSoup) -> str:
        """Removes boilerplate inside the chosen container. Mutates `soup`."""
        container = self.select_container(soup)
        if container is None:
            return ""
        for selector in BOILERPLATE_SELECTORS:
            for element in container.select(selector):
                if not element.decomposed:
                    element.decompose()
        return collapse_whitespace(container.get_text(" "))

    def extract(self, soup: BeautifulSoup, url: str) -> PageRecord:
        """
        Builds the PageRecord. Title and headings are read before boilerplate removal,
        so call this after any link extraction that needs the untouched document.
        """
        title = self.extract_title(soup)
        headings = self.extract_headings(soup)
        text = self.extract_text(soup)
        return PageRecord(url=url, title=title, headings=headings, text=text)

    def extract_html(self, html: str, url: str) -> PageRecord:
        return self.extract(self.parse(html), url)
