"""Image and link extraction from raw HTML.

Extracts image candidates from:
- <img src="...">
- <picture><source srcset="..."></picture> (first srcset entry)
- background-image: url(...) anywhere in the text (optional)

and same-origin page links from <a href="...">. Works on the token stream
from processor.html_scanner; see that module for the accepted
approximations of not using a full DOM.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from crawler.exceptions import InvalidUrlError
from processor.html_scanner import Tag, iter_tags
from processor.url_policy import frontier_candidate, resolve
from processor.url_rewrite import (
    DEFAULT_REWRITERS,
    ImageUrlRewriter,
    apply_rewriters,
    decode_html_entities,
)

logger = logging.getLogger(__name__)

CSS_BACKGROUND_RE = re.compile(
    r"""background-image\s*:\s*url\s*\(\s*["']?([^"')]+)["']?\s*\)""",
    re.IGNORECASE,
)
_LINE_BREAKS_RE = re.compile(r"[\r\n]+")


@dataclass
class ImageCandidate:
    """Image reference found on a page, already resolved to an absolute URL."""

    image_url: str
    alt_text: str
    raw_markup: str


@dataclass
class ExtractionResult:
    """Links and images extracted from one page, in document order."""

    links: list[str] = field(default_factory=list)
    images: list[ImageCandidate] = field(default_factory=list)


def collapse_markup(markup: str, max_length: int) -> str:
    """Collapse line breaks to spaces and truncate to ``max_length``."""
    return _LINE_BREAKS_RE.sub(" ", markup)[:max_length]


def first_srcset_url(srcset: str) -> str | None:
    """Return the URL of the first srcset entry, without its descriptor."""
    first_entry = srcset.split(",")[0].strip()
    if not first_entry:
        return None
    return first_entry.split()[0]


class Extractor:
    """Extracts image candidates and frontier links from HTML.

    Attributes:
        rewriters: Hooks applied to every resolved image URL, in order.
    """

    def __init__(self, rewriters: Sequence[ImageUrlRewriter] = DEFAULT_REWRITERS) -> None:
        self.rewriters = tuple(rewriters)

    def extract(
        self,
        html: str,
        page_url: str,
        include_css_backgrounds: bool,
        origin_url: str | None = None,
    ) -> ExtractionResult:
        """Extract links and images from a page.

        Args:
            html: Raw page HTML.
            page_url: Absolute URL of the page (base for resolution).
            include_css_backgrounds: Also scan CSS background-image URLs.
            origin_url: URL whose origin links must share; defaults to page_url.

        Returns:
            ExtractionResult with frontier-eligible links and image candidates.
        """
        tags = list(iter_tags(html))
        images = self._img_candidates(tags, page_url)
        images.extend(self._picture_candidates(tags, page_url))
        if include_css_backgrounds:
            images.extend(self._css_background_candidates(html, page_url))

        links = self._links(tags, page_url, origin_url or page_url)
        logger.debug(f"Extracted {len(links)} links and {len(images)} images from {page_url}")
        return ExtractionResult(links=links, images=images)

    def _img_candidates(self, tags: list[Tag], page_url: str) -> list[ImageCandidate]:
        candidates: list[ImageCandidate] = []
        for tag in tags:
            if tag.name != "img" or tag.closing:
                continue
            src = tag.attr("src")
            if not src:
                continue
            alt = decode_html_entities(tag.attr("alt") or "")
            candidate = self._candidate(src, page_url, alt, tag.raw)
            if candidate:
                candidates.append(candidate)
        return candidates

    def _picture_candidates(self, tags: list[Tag], page_url: str) -> list[ImageCandidate]:
        candidates: list[ImageCandidate] = []
        pending: list[ImageCandidate] = []
        in_picture = False
        for tag in tags:
            if tag.name == "picture":
                if not tag.closing:
                    in_picture = True
                    pending = []
                elif in_picture:
                    # Sources only count once their <picture> is closed
                    candidates.extend(pending)
                    in_picture = False
                    pending = []
                continue

            if not in_picture or tag.name != "source" or tag.closing:
                continue
            srcset = tag.attr("srcset")
            if not srcset:
                continue
            first = first_srcset_url(srcset)
            if not first:
                continue
            candidate = self._candidate(first, page_url, "", tag.raw)
            if candidate:
                pending.append(candidate)
        return candidates

    def _css_background_candidates(self, html: str, page_url: str) -> list[ImageCandidate]:
        candidates: list[ImageCandidate] = []
        for match in CSS_BACKGROUND_RE.finditer(html):
            candidate = self._candidate(match.group(1), page_url, "", match.group(0))
            if candidate:
                candidates.append(candidate)
        return candidates

    def _links(self, tags: list[Tag], page_url: str, origin_url: str) -> list[str]:
        links: dict[str, None] = {}
        for tag in tags:
            if tag.name != "a" or tag.closing:
                continue
            href = tag.attr("href")
            if not href:
                continue
            link = frontier_candidate(decode_html_entities(href), page_url, origin_url)
            if link:
                links.setdefault(link)
        return list(links)

    def _candidate(
        self, raw_url: str, page_url: str, alt_text: str, raw_markup: str
    ) -> ImageCandidate | None:
        decoded = decode_html_entities(raw_url).strip()
        if not decoded:
            return None
        try:
            absolute = resolve(decoded, page_url)
        except InvalidUrlError as e:
            logger.debug(f"Dropping image {raw_url!r} on {page_url}: {e}")
            return None
        return ImageCandidate(
            image_url=apply_rewriters(absolute, self.rewriters),
            alt_text=alt_text,
            raw_markup=raw_markup,
        )
