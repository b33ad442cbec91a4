import base64
import binascii
import logging
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, urlsplit

from bs4 import BeautifulSoup
from pydantic import ValidationError

from ragcrawl.config import settings
from ragcrawl.core.fetcher import RetryingFetcher
from ragcrawl.exceptions import TargetValidationError
from ragcrawl.models.document import FileEntry
from ragcrawl.models.source import ContentResponse, RepoInfo, RepoScope, RepoSource, TreeItem, TreeResponse
from ragcrawl.utils.reporting import CancellationToken, JobReporter, LoggingReporter, ProgressRange
from ragcrawl.utils.text_utils import collapse_whitespace

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = [
    ".git/",
    "node_modules/",
    "vendor/",
    "dist/",
    "build/",
    "target/",
    "bin/",
    "obj/",
    "pods/",
    "third_party/",
    "submodules/",
]

KEY_DOC_NAMES = {"readme", "changelog", "license", "licence", "contributing"}

DOC_DIR_MARKERS = ["docs/", "documentation/", "guide/", "guides/", "manual/"]

DOC_EXTENSIONS = {".md", ".mdx", ".txt", ".html", ".htm", ".rst", ".adoc"}

TEXT_EXTENSIONS = DOC_EXTENSIONS | {
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".h", ".hpp",
    ".cs", ".php", ".rb", ".go", ".rs", ".swift", ".kt", ".scala", ".clj",
    ".hs", ".ml", ".elm", ".dart", ".json", ".yaml", ".yml", ".toml", ".ini",
    ".cfg", ".conf", ".xml", ".svg", ".css", ".scss", ".sass", ".less",
}

FRONT_MATTER_RE = re.compile(r"^---[\s\S]*?---\n*")
HTML_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
MARKDOWN_HEADING_RE = re.compile(r"^#+\s*")


def parse_github_url(url: str) -> Optional[Tuple[str, str]]:
    """`https://github.com/{owner}/{repo}[/...]` -> (owner, repo)."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if (parts.hostname or "").lower() != "github.com":
        return None
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2:
        return None
    owner, repo = segments[0], segments[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    return owner, repo


def _split_name(path: str) -> Tuple[str, str]:
    base = path.lower().rsplit("/", 1)[-1]
    stem, dot, ext = base.rpartition(".")
    if not dot:
        return base, ""
    return stem, f".{ext}"


def is_excluded(path: str) -> bool:
    lower = path.lower()
    return any(lower.startswith(ex) or f"/{ex}" in lower for ex in EXCLUDED_DIRS)


def should_include(path: str, scope: RepoScope) -> bool:
    stem, ext = _split_name(path)
    if stem in KEY_DOC_NAMES:
        return True
    lower = path.lower()
    if scope == RepoScope.DOCS:
        if any(lower.startswith(marker) or f"/{marker}" in lower for marker in DOC_DIR_MARKERS):
            return True
        return ext in {".md", ".mdx", ".html", ".htm"}
    return ext in TEXT_EXTENSIONS


def file_type(path: str) -> str:
    stem, ext = _split_name(path)
    return "doc" if ext in DOC_EXTENSIONS or stem in KEY_DOC_NAMES else "code"


def file_title(path: str) -> str:
    """`docs/getting-started.md` -> `Getting Started`."""
    name = path.rsplit("/", 1)[-1]
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name
    words = re.split(r"[_\-\s]+", stem)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


def clean_markdown(content: str) -> str:
    content = FRONT_MATTER_RE.sub("", content, count=1)
    content = HTML_COMMENT_RE.sub("", content)
    content = EXCESS_NEWLINES_RE.sub("\n\n", content)
    return content.strip()


def html_to_text(content: str) -> str:
    return collapse_whitespace(BeautifulSoup(content, "html.parser").get_text(" "))


def process_content(content: str, path: str) -> str:
    content = content.replace("\r\n", "\n")
    _, ext = _split_name(path)
    if ext in (".md", ".mdx"):
        return clean_markdown(content)
    if ext in (".html", ".htm"):
        return html_to_text(content)
    return content.strip()


def markdown_headings(content: str, path: str) -> List[str]:
    _, ext = _split_name(path)
    if ext not in (".md", ".mdx"):
        return []
    headings = []
    for line in content.splitlines():
        line = line.strip()
        if line.startswith("#"):
            heading = MARKDOWN_HEADING_RE.sub("", line).strip()
            if heading:
                headings.append(heading)
    return headings


class GitHubRepoSource:
    """
    Collects file entries from GitHub repositories through the REST API:
    repository info for the default branch, the recursive tree, then base64 file contents.
    """
    def __init__(
        self,
        fetcher: Optional[RetryingFetcher] = None,
        api_base: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RetryingFetcher()
        self.api_base = (api_base or settings.GITHUB_API_BASE).rstrip("/")
        self.token = token if token is not None else settings.GITHUB_TOKEN
        self.timeout = timeout if timeout is not None else settings.GITHUB_REQUEST_TIMEOUT

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        token = token or self.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_json(self, url: str, token: Optional[str], reporter: Optional[JobReporter]):
        response = await self.fetcher.get(url, headers=self._headers(token), timeout=self.timeout, reporter=reporter)
        if response is None or response.status_code != 200:
            status = response.status_code if response is not None else "no response"
            logger.warning(f"GitHub request failed ({status}): {url}")
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"GitHub returned invalid JSON for {url}: {e}")
            return None

    async def get_repo_info(
        self, owner: str, repo: str, token: Optional[str] = None, reporter: Optional[JobReporter] = None
    ) -> Optional[RepoInfo]:
        data = await self._get_json(f"{self.api_base}/repos/{owner}/{repo}", token, reporter)
        if data is None:
            return None
        try:
            return RepoInfo.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected repository payload for {owner}/{repo}: {e}")
            return None

    async def list_files(
        self,
        owner: str,
        repo: str,
        branch: str,
        source: RepoSource,
        reporter: Optional[JobReporter] = None,
    ) -> List[TreeItem]:
        """Blobs from the recursive tree that pass the exclusion, size and scope filters."""
        url = f"{self.api_base}/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}?recursive=1"
        data = await self._get_json(url, source.auth_token, reporter)
        if data is None:
            return []
        try:
            tree = TreeResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected tree payload for {owner}/{repo}: {e}")
            return []
        if tree.truncated:
            logger.warning(f"Tree listing for {owner}/{repo} was truncated by GitHub")
        return [
            item for item in tree.tree
            if item.type == "blob"
            and not is_excluded(item.path)
            and item.size < source.max_file_bytes
            and should_include(item.path, source.scope)
        ]

    async def get_file_content(
        self, owner: str, repo: str, path: str, token: Optional[str] = None, reporter: Optional[JobReporter] = None
    ) -> Optional[str]:
        url = f"{self.api_base}/repos/{owner}/{repo}/contents/{quote(path)}"
        data = await self._get_json(url, token, reporter)
        if data is None:
            return None
        try:
            payload = ContentResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected content payload for {path}: {e}")
            return None
        if payload.content is None:
            return None
        try:
            raw = base64.b64decode(payload.content.replace("\n", ""))
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Could not decode {path}: {e}")
            return None
        return raw.decode("utf-8", errors="replace")

    async def collect(
        self,
        source: RepoSource,
        job_id: str = "",
        reporter: Optional[JobReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressRange] = None,
    ) -> List[FileEntry]:
        reporter = reporter or LoggingReporter(job_id)
        cancel_token = cancel_token or CancellationToken()
        progress = progress or ProgressRange(reporter, 0, 70)

        repos = []
        for url in source.repo_urls:
            parsed = parse_github_url(url)
            if parsed is None:
                reporter.log("error", f"Invalid GitHub URL: {url}")
                continue
            repos.append(parsed)
        if not repos:
            raise TargetValidationError(f"No valid GitHub repository URL in {source.repo_urls}")

        # Trees first, so progress is scaled against the files of every repository
        plan: List[Tuple[str, str, str, List[TreeItem]]] = []
        planned = 0
        for owner, repo in repos:
            if cancel_token.cancelled or planned >= source.max_files:
                break
            reporter.log("info", f"Scraping GitHub repository: {owner}/{repo}")

            info = await self.get_repo_info(owner, repo, source.auth_token, reporter)
            branch = info.default_branch if info else "main"
            files = await self.list_files(owner, repo, branch, source, reporter)
            take = min(len(files), source.max_files - planned)
            reporter.log("info", f"Found {len(files)} files to process (processing up to {take})")
            plan.append((owner, repo, branch, files[:take]))
            planned += take

        entries: List[FileEntry] = []
        failed = 0
        done = 0
        for owner, repo, branch, items in plan:
            for item in items:
                if cancel_token.cancelled:
                    break
                content = await self.get_file_content(owner, repo, item.path, source.auth_token, reporter)
                if content is None:
                    failed += 1
                    reporter.log("error", f"Failed to get content for: {item.path}")
                else:
                    text = process_content(content, item.path)
                    entries.append(FileEntry(
                        name=item.path,
                        url=f"https://github.com/{owner}/{repo}/blob/{branch}/{item.path}",
                        type=file_type(item.path),
                        size=len(text.encode("utf-8")),
                        text=text,
                        title=file_title(item.path),
                        headings=markdown_headings(content, item.path),
                    ))
                    reporter.log("debug", f"Processed: {item.path}")
                done += 1
                progress.update(done, planned)
        if cancel_token.cancelled:
            reporter.log("info", "Cancellation requested. Stopping file processing.")

        reporter.log(
            "info",
            f"GitHub scraping completed: {len(entries)} files processed, {failed} failed"
            f"{' (cancelled)' if cancel_token.cancelled else ''}",
        )
        return entries

    async def aclose(self):
        if self._owns_fetcher:
            await self.fetcher.aclose()
