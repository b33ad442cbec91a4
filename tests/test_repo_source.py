import base64

import httpx
import pytest

from ragcrawl.core.repo_source import (
    GitHubRepoSource,
    file_title,
    file_type,
    is_excluded,
    markdown_headings,
    parse_github_url,
    process_content,
    should_include,
)
from ragcrawl.exceptions import TargetValidationError
from ragcrawl.models.source import RepoScope, RepoSource
from ragcrawl.utils.reporting import CancellationToken

from conftest import make_fetcher

README = "# Project\n\nHello world.\n"
GUIDE = "---\ntitle: Guide\n---\n# Guide\n<!-- hidden -->\n\n\n\nSteps here.\n"
APP = "print('hi')\r\n"


def encoded(text):
    raw = base64.b64encode(text.encode("utf-8")).decode("ascii")
    # GitHub wraps base64 content at 60 columns
    return "\n".join(raw[i:i + 60] for i in range(0, len(raw), 60))


class FakeGitHub:
    def __init__(self, default_branch="dev", repo_info=True):
        self.default_branch = default_branch
        self.repo_info = repo_info
        self.requests = []
        self.tree = [
            {"path": "README.md", "type": "blob", "size": 30},
            {"path": "docs", "type": "tree"},
            {"path": "docs/guide.md", "type": "blob", "size": 80},
            {"path": "src/app.py", "type": "blob", "size": 20},
            {"path": "src/broken.py", "type": "blob", "size": 20},
            {"path": "src/huge.py", "type": "blob", "size": 5000},
            {"path": "node_modules/lib/index.js", "type": "blob", "size": 10},
            {"path": "assets/logo.png", "type": "blob", "size": 10},
        ]
        self.contents = {"README.md": README, "docs/guide.md": GUIDE, "src/app.py": APP}

    def __call__(self, request):
        self.requests.append(request)
        # /repos/{owner}/{repo}[/git/trees/{branch} | /contents/{path}]
        parts = request.url.path.split("/")
        if len(parts) < 4 or parts[1] != "repos":
            return httpx.Response(404)
        owner, repo, rest = parts[2], parts[3], parts[4:]
        if not rest:
            if not self.repo_info:
                return httpx.Response(404)
            return httpx.Response(200, json={"full_name": f"{owner}/{repo}", "default_branch": self.default_branch})
        if rest[:2] == ["git", "trees"]:
            return httpx.Response(200, json={"tree": self.tree, "truncated": False})
        if rest[0] == "contents":
            file_path = "/".join(rest[1:])
            if file_path not in self.contents:
                return httpx.Response(404)
            return httpx.Response(200, json={"content": encoded(self.contents[file_path]), "encoding": "base64"})
        return httpx.Response(404)

    def paths(self, prefix):
        return [r.url.path for r in self.requests if r.url.path.startswith(prefix)]


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def repo_source(github):
    return GitHubRepoSource(fetcher=make_fetcher(github, max_retries=0), api_base="https://api.github.test", token="")


def source(**overrides):
    options = dict(repo_urls=["https://github.com/owner/repo"], max_file_bytes=1000, max_files=50)
    options.update(overrides)
    return RepoSource(**options)


def test_parse_github_url():
    assert parse_github_url("https://github.com/owner/repo") == ("owner", "repo")
    assert parse_github_url("https://github.com/owner/repo.git") == ("owner", "repo")
    assert parse_github_url("https://github.com/owner/repo/tree/main/docs") == ("owner", "repo")
    assert parse_github_url("https://github.com/owner") is None
    assert parse_github_url("https://gitlab.com/owner/repo") is None


def test_path_filters():
    assert is_excluded("node_modules/a.js")
    assert is_excluded("packages/web/Vendor/lib.js")
    assert not is_excluded("src/vendors.py")

    assert should_include("LICENSE", RepoScope.DOCS)
    assert should_include("docs/api.txt", RepoScope.DOCS)
    assert should_include("guide.html", RepoScope.DOCS)
    assert not should_include("src/app.py", RepoScope.DOCS)
    assert should_include("src/app.py", RepoScope.FULL)
    assert not should_include("logo.png", RepoScope.FULL)


def test_file_type_and_title():
    assert file_type("README") == "doc"
    assert file_type("notes.rst") == "doc"
    assert file_type("src/app.py") == "code"
    assert file_title("docs/getting-started.md") == "Getting Started"
    assert file_title("my_module.py") == "My Module"


def test_content_cleanup_by_extension():
    assert process_content(GUIDE, "docs/guide.md") == "# Guide\n\nSteps here."
    assert process_content("<p>Hello <b>there</b></p>", "page.html") == "Hello there"
    assert process_content(APP, "src/app.py") == "print('hi')"
    assert markdown_headings("# One\ntext\n## Two\n#\n", "a.md") == ["One", "Two"]
    assert markdown_headings("# not a heading", "a.py") == []


@pytest.mark.asyncio
async def test_collect_uses_default_branch_and_filters_tree(repo_source, github, reporter):
    entries = await repo_source.collect(source(), "job1", reporter)

    assert github.paths("/repos/owner/repo/git/trees/") == ["/repos/owner/repo/git/trees/dev"]
    assert [e.name for e in entries] == ["README.md", "docs/guide.md", "src/app.py"]

    readme = entries[0]
    assert readme.url == "https://github.com/owner/repo/blob/dev/README.md"
    assert readme.type == "doc"
    assert readme.text == "# Project\n\nHello world."
    assert readme.size == len(readme.text.encode("utf-8"))
    assert readme.title == "README"
    assert readme.headings == ["Project"]
    assert entries[2].type == "code"

    assert "Failed to get content for: src/broken.py" in reporter.messages("error")
    assert not any("huge" in p or "node_modules" in p for p in github.paths("/repos/owner/repo/contents/"))
    assert reporter.progress == [17, 35, 52, 70]
    assert reporter.messages("info")[-1] == "GitHub scraping completed: 3 files processed, 1 failed"


@pytest.mark.asyncio
async def test_collect_falls_back_to_main_branch(reporter):
    github = FakeGitHub(repo_info=False)
    repo_source = GitHubRepoSource(fetcher=make_fetcher(github, max_retries=0), api_base="https://api.github.test")

    entries = await repo_source.collect(source(), "job1", reporter)

    assert github.paths("/repos/owner/repo/git/trees/") == ["/repos/owner/repo/git/trees/main"]
    assert entries[0].url == "https://github.com/owner/repo/blob/main/README.md"


@pytest.mark.asyncio
async def test_docs_scope_keeps_documentation_only(repo_source, reporter):
    entries = await repo_source.collect(source(scope=RepoScope.DOCS), "job1", reporter)
    assert [e.name for e in entries] == ["README.md", "docs/guide.md"]


@pytest.mark.asyncio
async def test_max_files_caps_content_requests(repo_source, github, reporter):
    entries = await repo_source.collect(source(max_files=2), "job1", reporter)

    assert len(entries) == 2
    assert len(github.paths("/repos/owner/repo/contents/")) == 2


@pytest.mark.asyncio
async def test_progress_spans_all_repositories(repo_source, github, reporter):
    repos = ["https://github.com/owner/repo", "https://github.com/owner/other"]

    entries = await repo_source.collect(source(repo_urls=repos), "job1", reporter)

    assert len(entries) == 6
    assert entries[3].url == "https://github.com/owner/other/blob/dev/README.md"
    assert reporter.progress == [8, 17, 26, 35, 43, 52, 61, 70]
    assert reporter.messages("info")[-1] == "GitHub scraping completed: 6 files processed, 2 failed"


@pytest.mark.asyncio
async def test_max_files_is_shared_across_repositories(repo_source, github, reporter):
    repos = ["https://github.com/owner/repo", "https://github.com/owner/other"]

    await repo_source.collect(source(repo_urls=repos, max_files=6), "job1", reporter)

    assert len(github.paths("/repos/owner/repo/contents/")) == 4
    assert len(github.paths("/repos/owner/other/contents/")) == 2
    assert reporter.progress == sorted(reporter.progress)
    assert reporter.progress[-1] == 70


@pytest.mark.asyncio
async def test_auth_token_is_sent_as_bearer(repo_source, github, reporter):
    await repo_source.collect(source(auth_token="ghp_test"), "job1", reporter)

    assert github.requests
    assert all(r.headers["Authorization"] == "Bearer ghp_test" for r in github.requests)
    assert all(r.headers["Accept"] == "application/vnd.github.v3+json" for r in github.requests)


@pytest.mark.asyncio
async def test_cancellation_stops_file_processing(repo_source, github, reporter):
    token = CancellationToken()
    token.cancel()

    entries = await repo_source.collect(source(), "job1", reporter, token)

    assert entries == []
    assert github.requests == []


@pytest.mark.asyncio
async def test_invalid_urls_fail_the_source(repo_source, reporter):
    with pytest.raises(TargetValidationError):
        await repo_source.collect(source(repo_urls=["https://example.com/x/y", "not a url"]), "job1", reporter)
    assert len(reporter.messages("error")) == 2
