import httpx

from movieshorts.scripts import ScriptFetcher, extract_script_text, script_url_variants

LINE = "NEIL: Don't let yourself get attached to anything you are not willing to walk out on."


def _script_page(body: str) -> str:
    return f"<html><body><table><tr><td class='scrtext'><pre>{body}</pre></td></tr></table></body></html>"


def test_url_variants_in_order():
    urls = script_url_variants("Ocean's Eleven (2001)")

    assert urls == [
        "https://imsdb.com/scripts/Ocean's-Eleven-(2001).html",
        "https://imsdb.com/scripts/Ocean's-Eleven-2001.html",
        "https://imsdb.com/scripts/Oceans-Eleven-2001.html",
        "https://imsdb.com/scripts/ocean's-eleven-(2001).html",
        "https://imsdb.com/scripts/ocean's-eleven-2001.html",
        "https://imsdb.com/scripts/oceans-eleven-2001.html",
        "https://imsdb.com/Movie%20Scripts/Ocean%27s%20Eleven%20%282001%29%20Script.html",
    ]


def test_loose_variant_drops_non_ascii():
    assert script_url_variants("Amélie")[2] == "https://imsdb.com/scripts/Amlie.html"


def test_extract_prefers_pre_block_and_decodes():
    html = "<pre>INT. DINER - NIGHT<br>Neil &amp; Vincent talk.<br/>&nbsp;&lt;beat&gt;</pre>"

    assert extract_script_text(html) == "INT. DINER - NIGHT\nNeil & Vincent talk.\n <beat>"


def test_extract_falls_back_to_scrtext_cell():
    html = '<table><tr><td class="scrtext">FADE IN:<br>A street.</td></tr></table>'

    assert extract_script_text(html) == "FADE IN:\nA street."


def test_extract_without_script_block_is_none():
    assert extract_script_text("<html><body><p>Search results</p></body></html>") is None


def test_fetch_tries_variants_until_one_has_enough_text(tmp_path, reporter):
    good_url = "https://imsdb.com/scripts/heat.html"
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        seen.append(url)
        if url == "https://imsdb.com/scripts/Heat.html":
            return httpx.Response(200, text=_script_page("too short"))
        if url == good_url:
            return httpx.Response(200, text=_script_page("<br>".join([LINE] * 30)))
        return httpx.Response(404)

    fetcher = ScriptFetcher(httpx.Client(transport=httpx.MockTransport(handler)), reporter)
    dest = tmp_path / "Heat_summary.txt"

    assert fetcher.fetch("Heat", dest) == good_url

    assert seen[-1] == good_url
    assert dest.read_text().startswith("NEIL:")
    assert len(dest.read_text()) >= 1000
    assert reporter.warned("extracted text too small (9)")


def test_fetch_reports_each_failed_attempt(tmp_path, reporter):
    def handler(request: httpx.Request) -> httpx.Response:
        if "Movie%20Scripts" in str(request.url):
            return httpx.Response(200, text="<html><body>Not found</body></html>")
        return httpx.Response(404)

    fetcher = ScriptFetcher(httpx.Client(transport=httpx.MockTransport(handler)), reporter)

    assert fetcher.fetch("Heat", tmp_path / "Heat_summary.txt") is None

    warnings = reporter.messages("warning")
    assert len(warnings) == 7
    assert sum("HTTP 404" in w for w in warnings) == 6
    assert "script block not found" in warnings[-1]
    assert not (tmp_path / "Heat_summary.txt").exists()
