"""CLI commands for the site image crawler.

Provides commands for:
- Running a crawl and following its progress
- Listing jobs, listing crawled images and exporting them as CSV
- Post-crawl maintenance (URL fix-up, dimension enrichment, clearing results)
"""

import argparse
import csv
import logging
import sys
from typing import TextIO

from crawler.exceptions import CrawlerError
from crawler.logging_config import setup_logging
from crawler.models import CrawledImageRecord, CrawlRequest, JobStatus, ProgressSnapshot
from crawler.orchestrator import CrawlOrchestrator
from crawler.progress import ProgressHub, RedisProgressPublisher
from env_config import (
    get_crawler_include_css_backgrounds,
    get_crawler_max_pages,
    get_crawler_timeout_ms,
    get_log_format,
    get_log_level,
    get_progress_backend,
    get_redis_url,
    get_store_backend,
)
from processor.dimensions import ImageDimensionReader
from processor.url_rewrite import repair_image_record
from storage.db import check_connection, close_all_connections
from storage.factory import build_stores
from storage.filters import ALT_FILTERS, filter_images

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "page_url",
    "image_url",
    "alt_text",
    "raw_markup",
    "filename",
    "image_type",
    "dimensions",
)


def _print_progress(job_id: str, snapshot: ProgressSnapshot) -> None:
    current = snapshot.current_page or "-"
    print(
        f"[{snapshot.status.value:<9}] {snapshot.progress:>3}% "
        f"pages={snapshot.pages_processed}/{snapshot.total_pages_found} "
        f"images={snapshot.images_found} {current}"
    )


def crawl_command(args: argparse.Namespace) -> int:
    """Run one crawl in the foreground.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 if the job completed, 1 otherwise).
    """
    request = CrawlRequest(
        target_url=args.url,
        max_pages=args.max_pages,
        timeout_ms=args.timeout_ms,
        include_css_backgrounds=args.css_backgrounds,
    )

    job_store, image_store = build_stores()
    hub = ProgressHub()
    orchestrator = CrawlOrchestrator(job_store, image_store, hub=hub)

    try:
        job = orchestrator.submit(request)
    except CrawlerError as e:
        logger.error(str(e))
        return 1

    if not args.quiet:
        hub.subscribe(job.id, _print_progress)
    if get_progress_backend() == "redis":
        RedisProgressPublisher.from_url(get_redis_url()).attach(hub, job.id)

    orchestrator.start(job.id)

    job = job_store.get(job.id)
    if job is None:
        logger.error("Job disappeared from the store")
        return 1

    print(
        f"\nJob {job.id} {job.status.value}: {job.pages_processed} pages, "
        f"{job.images_found} images"
    )
    if job.error:
        print(f"Error: {job.error}")
    return 0 if job.status is JobStatus.COMPLETED else 1


def list_jobs_command(args: argparse.Namespace) -> int:
    """List crawl jobs.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        job_store, _ = build_stores()
        jobs = job_store.list_jobs()
    except Exception as e:
        logger.error(f"Failed to list jobs: {e}")
        return 1

    if not jobs:
        print("No crawl jobs found.")
        return 0

    print(f"\n{'ID':<32} {'Status':<10} {'Pages':<8} {'Images':<8} {'Target'}")
    print("-" * 90)
    for job in jobs:
        print(
            f"{job.id:<32} {job.status.value:<10} {job.pages_processed:<8} "
            f"{job.images_found:<8} {job.target_url}"
        )
    print()
    return 0


def _load_filtered_images(args: argparse.Namespace) -> list[CrawledImageRecord]:
    _, image_store = build_stores()
    images = image_store.list_by_job(args.job_id) if args.job_id else image_store.list_all()
    return filter_images(
        images,
        search=args.search,
        alt_filter=args.alt_filter,
        image_type=args.type,
    )


def list_images_command(args: argparse.Namespace) -> int:
    """List crawled images, optionally filtered.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        images = _load_filtered_images(args)
    except Exception as e:
        logger.error(f"Failed to list images: {e}")
        return 1

    if not images:
        print("No images found.")
        return 0

    for image in images:
        alt = image.alt_text or ""
        print(f"{image.image_url}\t{image.page_url}\t{image.image_type or '-'}\t{alt}")
    print(f"\n{len(images)} images")
    return 0


def write_images_csv(images: list[CrawledImageRecord], stream: TextIO) -> None:
    """Write image records as CSV rows, one per record, after a header row."""
    writer = csv.writer(stream)
    writer.writerow(CSV_COLUMNS)
    for image in images:
        writer.writerow([getattr(image, column) or "" for column in CSV_COLUMNS])


def export_images_command(args: argparse.Namespace) -> int:
    """Export crawled images as CSV to a file or stdout.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        images = _load_filtered_images(args)

        if args.output in (None, "-"):
            write_images_csv(images, sys.stdout)
            return 0

        with open(args.output, "w", encoding="utf-8", newline="") as f:
            write_images_csv(images, f)
        print(f"Exported {len(images)} images to {args.output}")
        return 0

    except Exception as e:
        logger.error(f"Failed to export images: {e}")
        return 1


def fix_image_urls_command(args: argparse.Namespace) -> int:
    """Re-apply entity decoding and URL rewrites to stored image records.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        _, image_store = build_stores()
        images = image_store.list_all()

        fixed = 0
        for image in images:
            changes = repair_image_record(image.image_url, image.alt_text)
            if not changes:
                continue
            fixed += 1
            if args.dry_run:
                print(f"Would fix {image.id}: {changes}")
            else:
                image_store.update(image.id, **changes)

        verb = "Would fix" if args.dry_run else "Fixed"
        print(f"{verb} {fixed} of {len(images)} image records")
        return 0

    except Exception as e:
        logger.error(f"Failed to fix image URLs: {e}")
        return 1


def enrich_dimensions_command(args: argparse.Namespace) -> int:
    """Download images lacking dimensions and store their size.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    reader = ImageDimensionReader()
    try:
        _, image_store = build_stores()
        images = image_store.list_by_job(args.job_id) if args.job_id else image_store.list_all()
        pending = [image for image in images if not image.dimensions]

        enriched = 0
        for image in pending:
            dimensions = reader.measure(image.image_url)
            if dimensions:
                image_store.update(image.id, dimensions=dimensions)
                enriched += 1

        print(f"Enriched {enriched} of {len(pending)} images without dimensions")
        return 0

    except Exception as e:
        logger.error(f"Failed to enrich dimensions: {e}")
        return 1
    finally:
        reader.close()


def clear_results_command(args: argparse.Namespace) -> int:
    """Delete the image records of every job.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        job_store, image_store = build_stores()
        jobs = job_store.list_jobs()
        for job in jobs:
            image_store.delete_by_job(job.id)
        print(f"Cleared image records for {len(jobs)} jobs")
        return 0

    except Exception as e:
        logger.error(f"Failed to clear results: {e}")
        return 1


def _add_image_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--job-id", type=str, help="Only images from this job")
    parser.add_argument("--search", type=str, help="Text to search for")
    parser.add_argument(
        "--alt-filter",
        choices=ALT_FILTERS,
        default="all",
        help="Filter by presence of alt text (default: all)",
    )
    parser.add_argument("--type", type=str, help="Image type, e.g. png")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="site-image-crawler",
        description="Site Image Crawler CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (default: from LOG_FORMAT env var)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # crawl command
    crawl_parser = subparsers.add_parser("crawl", help="Crawl a site and record its images")
    crawl_parser.add_argument("url", help="Absolute http(s) URL to start from")
    crawl_parser.add_argument(
        "--max-pages",
        type=int,
        default=get_crawler_max_pages(),
        help="Maximum pages to process (default: from CRAWLER_MAX_PAGES)",
    )
    crawl_parser.add_argument(
        "--timeout-ms",
        type=int,
        default=get_crawler_timeout_ms(),
        help="Per-request timeout in milliseconds (default: from CRAWLER_TIMEOUT_MS)",
    )
    crawl_parser.add_argument(
        "--css-backgrounds",
        action=argparse.BooleanOptionalAction,
        default=get_crawler_include_css_backgrounds(),
        help="Scan CSS background-image URLs (default: from CRAWLER_INCLUDE_CSS_BACKGROUNDS)",
    )
    crawl_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print progress snapshots",
    )
    crawl_parser.set_defaults(func=crawl_command)

    # list-jobs command
    jobs_parser = subparsers.add_parser("list-jobs", help="List crawl jobs")
    jobs_parser.set_defaults(func=list_jobs_command)

    # list-images command
    images_parser = subparsers.add_parser("list-images", help="List crawled images")
    _add_image_filter_arguments(images_parser)
    images_parser.set_defaults(func=list_images_command)

    # export-images command
    export_parser = subparsers.add_parser("export-images", help="Export crawled images as CSV")
    export_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="-",
        help="CSV file to write (default: stdout)",
    )
    _add_image_filter_arguments(export_parser)
    export_parser.set_defaults(func=export_images_command)

    # fix-image-urls command
    fix_parser = subparsers.add_parser(
        "fix-image-urls",
        help="Decode entities and apply URL rewrites to stored image records",
    )
    fix_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    fix_parser.set_defaults(func=fix_image_urls_command)

    # enrich-dimensions command
    enrich_parser = subparsers.add_parser(
        "enrich-dimensions",
        help="Download images and store their pixel dimensions",
    )
    enrich_parser.add_argument("--job-id", type=str, help="Only images from this job")
    enrich_parser.set_defaults(func=enrich_dimensions_command)

    # clear-results command
    clear_parser = subparsers.add_parser(
        "clear-results",
        help="Delete image records for every job",
    )
    clear_parser.set_defaults(func=clear_results_command)

    return parser


def _writes_csv_to_stdout(args: argparse.Namespace) -> bool:
    return args.command == "export-images" and args.output in (None, "-")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=get_log_level(),
        json_format=args.json_logs or get_log_format() == "json",
        log_file=args.log_file,
        stream=sys.stderr if _writes_csv_to_stdout(args) else None,
    )

    if not args.command:
        parser.print_help()
        return 1

    if get_store_backend() != "postgres":
        return args.func(args)

    if not check_connection():
        return 1
    try:
        return args.func(args)
    finally:
        close_all_connections()


if __name__ == "__main__":
    sys.exit(main())
