import httpx
import pytest

from ragcrawl.core.robots import RobotsCache
from ragcrawl.core.sitemap import SitemapDiscoverer, extract_locs, is_sitemap_index

from conftest import make_fetcher

UA = "RagCrawlBot/1.0"


def urlset(*urls):
    entries = "".join(f"<url><loc>{u}</loc></url>" for u in urls)
    return f'<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'


def sitemapindex(*urls):
    entries = "".join(f"<sitemap><loc>{u}</loc></sitemap>" for u in urls)
    return f'<?xml version="1.0"?><sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'


def site(routes):
    calls = []

    def handler(request):
        calls.append(str(request.url))
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, text=body)

    return handler, calls


def test_extract_locs_tolerates_whitespace_and_junk():
    xml = "<urlset><url><loc>\n  https://a.test/one \n</loc></url><url><LOC>https://a.test/two</LOC></url><broken"
    assert extract_locs(xml) == ["https://a.test/one", "https://a.test/two"]
    assert extract_locs("") == []


def test_is_sitemap_index():
    assert is_sitemap_index(sitemapindex("https://a.test/s1.xml"))
    assert not is_sitemap_index(urlset("https://a.test/"))


@pytest.mark.asyncio
async def test_discover_expands_index_and_dedupes():
    handler, _ = site({
        "https://a.test/sitemap.xml": sitemapindex("https://a.test/s1.xml", "https://a.test/s2.xml"),
        "https://a.test/s1.xml": urlset("https://a.test/one", "https://a.test/two"),
        "https://a.test/s2.xml": urlset("https://a.test/two", "https://a.test/three"),
    })
    discoverer = SitemapDiscoverer(make_fetcher(handler))

    urls = await discoverer.discover("https://a.test/docs/", UA, max_urls=100)

    assert urls == ["https://a.test/one", "https://a.test/two", "https://a.test/three"]


@pytest.mark.asyncio
async def test_discover_is_bounded_by_max_urls():
    handler, calls = site({
        "https://a.test/sitemap.xml": sitemapindex("https://a.test/s1.xml", "https://a.test/s2.xml"),
        "https://a.test/s1.xml": urlset("https://a.test/one", "https://a.test/two"),
        "https://a.test/s2.xml": urlset("https://a.test/three"),
    })
    discoverer = SitemapDiscoverer(make_fetcher(handler))

    urls = await discoverer.discover("https://a.test/", UA, max_urls=2)

    assert urls == ["https://a.test/one", "https://a.test/two"]
    assert "https://a.test/s2.xml" not in calls


@pytest.mark.asyncio
async def test_self_referencing_index_terminates():
    handler, calls = site({
        "https://a.test/sitemap.xml": sitemapindex("https://a.test/sitemap.xml", "https://a.test/s1.xml"),
        "https://a.test/s1.xml": sitemapindex("https://a.test/sitemap.xml", "https://a.test/s1.xml"),
    })
    discoverer = SitemapDiscoverer(make_fetcher(handler))

    urls = await discoverer.discover("https://a.test/", UA, max_urls=10)

    assert urls == []
    assert calls.count("https://a.test/sitemap.xml") == 1
    assert calls.count("https://a.test/s1.xml") == 1


@pytest.mark.asyncio
async def test_robots_sitemap_entries_are_followed():
    handler, calls = site({
        "https://a.test/robots.txt": "User-agent: *\nDisallow:\nSitemap: /custom-sitemap.xml\n",
        "https://a.test/custom-sitemap.xml": urlset("https://a.test/from-robots"),
    })
    fetcher = make_fetcher(handler)
    robots = RobotsCache(fetcher)
    discoverer = SitemapDiscoverer(fetcher, robots)

    urls = await discoverer.discover("https://a.test/", UA, max_urls=10)
    assert urls == ["https://a.test/from-robots"]

    # Rules are cached, so a later robots check does not refetch
    assert await robots.is_allowed("https://a.test/page", UA)
    assert calls.count("https://a.test/robots.txt") == 1


@pytest.mark.asyncio
async def test_missing_sitemap_yields_nothing():
    handler, _ = site({})
    discoverer = SitemapDiscoverer(make_fetcher(handler))
    assert await discoverer.discover("https://a.test/", UA, max_urls=10) == []
