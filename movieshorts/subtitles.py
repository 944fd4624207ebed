"""
Subtitle acquisition and normalization.

Subtitles come from subf2m.co: the English listing page for the movie's
slug links to per-release detail pages, each of which links to a zip
archive holding the .srt. When the listing only links uploaders, their
profile pages are searched for a detail link instead.
"""

import re
import zipfile
from pathlib import Path
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from movieshorts.checkpoints import part_path
from movieshorts.reporter import Reporter

BASE_URL = "https://subf2m.co"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.0 Safari/605.1.15"
)
PAGE_TIMEOUT = 30
ARCHIVE_TIMEOUT = 120
MAX_PROFILES = 12

_TIMING_LINE = re.compile(
    r"^\s*(\d+):(\d+):(\d+),(\d+)\s+-->\s+(\d+):(\d+):(\d+),(\d+)(?:\s.*)?$"
)


def title_slug(title: str) -> str:
    """subf2m slug: no quotes or parentheses, dashes for spaces, sequel suffix."""
    slug = "".join(ch for ch in title if ch not in "'()").replace(" ", "-").lower()
    base = slug
    if base.endswith("ii"):
        slug += "-2"
    if base.endswith("iii"):
        slug += "-3"
    if base.endswith("iv"):
        slug += "-4"
    return slug


def extract_hrefs(html: str) -> list[str]:
    soup = BeautifulSoup(html, "lxml")
    return [a["href"] for a in soup.find_all("a", href=True)]


class SubtitleFetcher:
    """Downloads the English .srt for a movie title."""

    def __init__(self, client: httpx.Client, reporter: Reporter):
        self.client = client
        self.reporter = reporter

    def fetch(self, title: str, dest: Path) -> bool:
        """Save the subtitle file for `title` to `dest`. Returns success."""
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        slug = title_slug(title)
        listing_url = f"{BASE_URL}/subtitles/{slug}/english"

        try:
            listing = self._get_text(listing_url)
            if listing is None:
                self.reporter.warn(f"subf2m: listing unavailable at {listing_url}")
                return False

            detail_url = self._find_detail_page(listing, slug)
            if detail_url is None:
                self.reporter.warn(
                    f"subf2m: no subtitle detail page for {title} (slug={slug})"
                )
                return False

            detail = self._get_text(detail_url)
            if detail is None:
                self.reporter.warn(f"subf2m: detail page unavailable at {detail_url}")
                return False

            download_href = next(
                (h for h in extract_hrefs(detail) if h.endswith("download")), None
            )
            if download_href is None:
                self.reporter.warn(f"subf2m: no download link on {detail_url}")
                return False

            archive = dest.parent / f"{title}_tmp.zip"
            if not self._download(urljoin(BASE_URL, download_href), archive):
                return False
            try:
                extracted = extract_srt(archive, dest)
            finally:
                archive.unlink(missing_ok=True)
        except httpx.HTTPError as e:
            self.reporter.warn(f"subf2m: request failed for {title}: {e}")
            return False
        except (zipfile.BadZipFile, OSError) as e:
            self.reporter.warn(f"subf2m: could not unpack subtitles for {title}: {e}")
            return False

        if not extracted:
            self.reporter.warn(f"subf2m: archive for {title} holds no .srt")
            return False
        return dest.is_file()

    def _find_detail_page(self, listing: str, slug: str) -> str | None:
        prefix = f"/subtitles/{slug}/english/"
        hrefs = extract_hrefs(listing)
        for href in hrefs:
            if href.startswith(prefix) and "english-german" not in href:
                return urljoin(BASE_URL, href)

        tried = 0
        for href in hrefs:
            if not href.startswith("/u/"):
                continue
            if tried >= MAX_PROFILES:
                break
            tried += 1
            profile = self._get_text(urljoin(BASE_URL, href))
            if profile is None:
                continue
            for phref in extract_hrefs(profile):
                if phref.startswith(prefix):
                    return urljoin(BASE_URL, phref)
        return None

    def _get_text(self, url: str) -> str | None:
        resp = self.client.get(url, timeout=PAGE_TIMEOUT)
        if resp.status_code != 200 or not resp.text:
            return None
        return resp.text

    def _download(self, url: str, archive: Path) -> bool:
        resp = self.client.get(url, timeout=ARCHIVE_TIMEOUT)
        if resp.status_code != 200:
            self.reporter.warn(f"subf2m: archive download HTTP {resp.status_code} for {url}")
            return False
        archive.write_bytes(resp.content)
        return True


def extract_srt(archive: Path, dest: Path) -> bool:
    """Copy the first .srt member of a zip archive to `dest`."""
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            if info.is_dir() or not info.filename.lower().endswith(".srt"):
                continue
            part = part_path(dest)
            with zf.open(info) as src, open(part, "wb") as out:
                out.write(src.read())
            part.replace(dest)
            return True
    return False


def _seconds(h: str, m: str, s: str) -> int:
    return int(h) * 3600 + int(m) * 60 + int(s)


def normalize_subtitles(src: Path, dest: Path) -> bool:
    """Rewrite cue timings as whole seconds and drop italics tags.

    `00:01:02,500 --> 00:01:05,120` becomes `62 --> 65`; milliseconds are
    truncated. Every other line is copied with its line ending.
    """
    try:
        text = Path(src).read_bytes().decode("utf-8", errors="replace")
    except OSError:
        return False
    text = text.replace("<i>", "").replace("</i>", "")

    out = []
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        match = _TIMING_LINE.match(body)
        if match:
            g = match.groups()
            out.append(f"{_seconds(*g[0:3])} --> {_seconds(*g[4:7])}\n")
        else:
            out.append(body + ending)

    try:
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        part = part_path(dest)
        part.write_text("".join(out), encoding="utf-8", newline="")
        part.replace(dest)
    except OSError:
        return False
    return True
