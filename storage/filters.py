"""Filtering helpers for listing crawled images."""

from collections.abc import Iterable

from crawler.models import CrawledImageRecord

ALT_FILTERS = ("all", "with-alt", "without-alt")


def filter_images(
    images: Iterable[CrawledImageRecord],
    search: str | None = None,
    alt_filter: str = "all",
    image_type: str | None = None,
) -> list[CrawledImageRecord]:
    """Filter image records the way the results listing does.

    Args:
        images: Records to filter.
        search: Case-insensitive text matched against image URL, page URL,
            alt text and filename.
        alt_filter: ``"with-alt"`` keeps records with non-blank alt text,
            ``"without-alt"`` keeps the rest, ``"all"`` keeps everything.
        image_type: Keep only records of this image type (e.g. ``"png"``).

    Returns:
        Matching records in their original order.

    Raises:
        ValueError: If ``alt_filter`` is not one of ALT_FILTERS.
    """
    if alt_filter not in ALT_FILTERS:
        raise ValueError(f"alt_filter must be one of {', '.join(ALT_FILTERS)}")

    needle = search.strip().lower() if search else ""
    wanted_type = image_type.lower() if image_type and image_type != "all" else None

    matches = []
    for image in images:
        has_alt = bool(image.alt_text and image.alt_text.strip())
        if alt_filter == "with-alt" and not has_alt:
            continue
        if alt_filter == "without-alt" and has_alt:
            continue
        if wanted_type and (image.image_type or "").lower() != wanted_type:
            continue
        if needle and not _matches_search(image, needle):
            continue
        matches.append(image)
    return matches


def _matches_search(image: CrawledImageRecord, needle: str) -> bool:
    haystacks = (image.image_url, image.page_url, image.alt_text, image.filename)
    return any(needle in value.lower() for value in haystacks if value)
