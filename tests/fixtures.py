"""Test HTML and helpers for crawler tests.

SAMPLE_HTML contains the image and link shapes the extractor must
handle; ScriptedFetcher serves canned pages without any network.
"""

from processor.fetcher import FetchFailure, PageFetchResult

SAMPLE_PAGE_URL = "https://example.com/gallery/index.html"

SAMPLE_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Gallery</title>
    <style>.hero { background-image: url('/img/hero.jpg'); }</style>
</head>
<body>
    <!-- <img src="/img/commented.png" alt="Hidden"> -->

    <!-- Standard img tags -->
    <img src="/img/photo1.jpg" alt="Photo 1">
    <img src="https://example.com/img/photo2.png" alt="Tom &amp; Jerry">
    <img src="photo3.webp">
    <IMG SRC='/img/upper.gif' ALT='Upper'>
    <img alt="No source">

    <!-- Picture element with sources -->
    <picture>
        <source srcset="/img/large.avif 2x, /img/small.avif 1x" type="image/avif">
        <img src="/img/fallback.jpg" alt="Fallback">
    </picture>

    <div class="banner" style="background-image: url(/img/banner.png)"></div>

    <img src="/_next/image?url=%2Fimg%2Fnext.png&amp;w=1080">

    <!-- Links to follow -->
    <a href="/about">About</a>
    <a href="/contact#form">Contact</a>
    <a href="/about">About again</a>
    <a href="https://example.com/page2">Page 2</a>
    <a href="https://other-domain.com/external">External link (should not follow)</a>

    <!-- Non-page resources to skip -->
    <a href="/document.pdf">PDF Document</a>
    <a href="mailto:info@example.com">Mail</a>

    <a href="/search?q=cats&amp;page=2">Search</a>
</body>
</html>
"""


class ScriptedFetcher:
    """Stand-in for PageFetcher that serves pages from a dict.

    URLs missing from ``pages`` answer with HTTP 404; URLs in ``failures``
    fail with the given kind after the default three attempts.
    """

    def __init__(
        self,
        pages: dict[str, str],
        failures: dict[str, FetchFailure] | None = None,
    ) -> None:
        self.pages = pages
        self.failures = failures or {}
        self.requests: list[str] = []

    def fetch(self, url: str, timeout_ms: int) -> PageFetchResult:
        self.requests.append(url)
        if url in self.failures:
            return PageFetchResult(
                success=False,
                url=url,
                failure=self.failures[url],
                error_message=f"scripted {self.failures[url].value}",
                attempts=3,
            )
        if url not in self.pages:
            return PageFetchResult(
                success=False,
                url=url,
                status_code=404,
                failure=FetchFailure.HTTP_STATUS,
                error_message="HTTP 404",
                attempts=3,
            )
        return PageFetchResult(success=True, url=url, html=self.pages[url], status_code=200)

    def close(self) -> None:
        pass
