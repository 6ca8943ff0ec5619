"""Tests for image dimension enrichment."""

import io

import pytest
from PIL import Image
from pytest_httpserver import HTTPServer

from processor.dimensions import ImageDimensionReader


@pytest.fixture
def png_bytes() -> bytes:
    img = Image.new("RGB", (120, 80), color="green")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


class TestImageDimensionReader:
    """Test cases for ImageDimensionReader."""

    @pytest.fixture
    def reader(self) -> ImageDimensionReader:
        return ImageDimensionReader(timeout=5)

    def test_parse_dimensions(self, reader: ImageDimensionReader, png_bytes: bytes) -> None:
        assert reader.parse_dimensions(png_bytes) == (120, 80)

    def test_parse_dimensions_failure(self, reader: ImageDimensionReader) -> None:
        assert reader.parse_dimensions(b"not an image") == (None, None)

    def test_measure_success(
        self, reader: ImageDimensionReader, png_bytes: bytes, httpserver: HTTPServer
    ) -> None:
        httpserver.expect_request("/cat.png").respond_with_data(
            png_bytes, content_type="image/png"
        )
        assert reader.measure(httpserver.url_for("/cat.png")) == "120x80"

    def test_measure_http_error(self, reader: ImageDimensionReader, httpserver: HTTPServer) -> None:
        httpserver.expect_request("/gone.png").respond_with_data("", status=404)
        assert reader.measure(httpserver.url_for("/gone.png")) is None

    def test_measure_unreadable_payload(
        self, reader: ImageDimensionReader, httpserver: HTTPServer
    ) -> None:
        httpserver.expect_request("/fake.png").respond_with_data(
            b"<html>not an image</html>", content_type="image/png"
        )
        assert reader.measure(httpserver.url_for("/fake.png")) is None

    def test_measure_too_large(self, png_bytes: bytes, httpserver: HTTPServer) -> None:
        httpserver.expect_request("/big.png").respond_with_data(
            png_bytes, content_type="image/png"
        )
        reader = ImageDimensionReader(max_file_size=10)

        assert reader.measure(httpserver.url_for("/big.png")) is None
