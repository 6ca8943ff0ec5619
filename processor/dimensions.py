"""Image dimension enrichment.

Runs after a crawl, outside the traversal loop: downloads each recorded
image and stores its pixel size as "WxH" on the record.
"""

import logging
from io import BytesIO

import requests
from PIL import Image, UnidentifiedImageError

from env_config import get_crawler_user_agent

logger = logging.getLogger(__name__)


class ImageDimensionReader:
    """Reads pixel dimensions of remote images.

    Attributes:
        max_file_size: Maximum bytes read per image (default: 20MB).
        timeout: Request timeout in seconds.
        session: Reusable requests Session for connection pooling.
    """

    def __init__(
        self,
        max_file_size: int = 20 * 1024 * 1024,
        timeout: float = 15,
        session: requests.Session | None = None,
    ) -> None:
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": get_crawler_user_agent()})

    def measure(self, url: str) -> str | None:
        """Return "WxH" for the image at ``url``, or None if unavailable.

        Args:
            url: Absolute image URL.

        Returns:
            Dimension string, or None when the download fails, the body is
            too large, or the payload is not a readable image.
        """
        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
            response.raise_for_status()
            content = self._read_content_with_limit(response)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch image {url}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Skipping {url}: {e}")
            return None

        width, height = self.parse_dimensions(content)
        if width is None or height is None:
            logger.debug(f"Could not read dimensions of {url}")
            return None
        return f"{width}x{height}"

    def parse_dimensions(self, content: bytes) -> tuple[int | None, int | None]:
        """Parse image dimensions from binary content.

        Args:
            content: Raw image bytes.

        Returns:
            Tuple of (width, height) or (None, None) on failure.
        """
        try:
            with Image.open(BytesIO(content)) as img:
                return img.width, img.height
        except (UnidentifiedImageError, OSError) as e:
            logger.debug(f"Could not parse image dimensions: {e}")
            return None, None

    def _read_content_with_limit(self, response: requests.Response) -> bytes:
        """Read response content, refusing bodies above max_file_size.

        Raises:
            ValueError: If content exceeds max_file_size.
        """
        chunks = []
        total_size = 0

        for chunk in response.iter_content(chunk_size=8192):
            chunks.append(chunk)
            total_size += len(chunk)

            if total_size > self.max_file_size:
                raise ValueError(f"File exceeds maximum size: {self.max_file_size} bytes")

        return b"".join(chunks)

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
