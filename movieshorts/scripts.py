"""
Screenplay lookup on IMSDb.

IMSDb has no search API and its URL scheme for a title is inconsistent, so
a fixed list of URL spellings is tried in order. The screenplay is the
page's first <pre> block, or the `scrtext` cell on pages without one.
"""

import re
from pathlib import Path
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from movieshorts.reporter import Reporter

BASE_URL = "https://imsdb.com"
PAGE_TIMEOUT = 30
MIN_SCRIPT_CHARS = 1000

_LOOSE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def script_url_variants(title: str) -> list[str]:
    dashed = title.replace(" ", "-")
    no_parens = dashed.replace("(", "").replace(")", "")
    loose = _LOOSE_CHARS.sub("", "".join(ch for ch in title if ch not in "()'").replace(" ", "-"))

    names = [dashed, no_parens, loose, dashed.lower(), no_parens.lower(), loose.lower()]
    urls = [f"{BASE_URL}/scripts/{name}.html" for name in names]
    urls.append(f"{BASE_URL}/Movie%20Scripts/{quote(title, safe='-_.')}%20Script.html")
    return urls


def extract_script_text(html: str) -> str | None:
    """Plain text of the screenplay block, or None if the page has none."""
    soup = BeautifulSoup(html, "lxml")
    block = soup.find("pre") or soup.find(class_="scrtext")
    if block is None:
        return None
    for br in block.find_all("br"):
        br.replace_with("\n")
    return block.get_text().replace("\xa0", " ")


class ScriptFetcher:
    def __init__(self, client: httpx.Client, reporter: Reporter):
        self.client = client
        self.reporter = reporter

    def fetch(self, title: str, dest: Path) -> str | None:
        """Try each URL variant; save the first usable script to `dest`.

        Returns the URL that worked, or None.
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        for url in script_url_variants(title):
            reason = self._try(url, dest)
            if reason is None:
                return url
            self.reporter.warn(f"IMSDb attempt failed ({reason}): {url}")
        return None

    def _try(self, url: str, dest: Path) -> str | None:
        """Returns None on success, otherwise the failure reason."""
        try:
            resp = self.client.get(url, timeout=PAGE_TIMEOUT)
        except httpx.HTTPError as e:
            return f"request error: {e}"
        if resp.status_code != 200:
            return f"HTTP {resp.status_code}"
        if not resp.text:
            return "HTTP empty body"

        text = extract_script_text(resp.text)
        if text is None:
            return "script block not found"
        if len(text) < MIN_SCRIPT_CHARS:
            return f"extracted text too small ({len(text)})"

        try:
            dest.write_text(text, encoding="utf-8")
        except OSError as e:
            return f"write failed: {e}"
        return None
