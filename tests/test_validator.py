import pytest

from validator import (
    FORMAT_AVIF,
    FORMAT_GIF,
    FORMAT_JPEG,
    FORMAT_PNG,
    FORMAT_WEBP,
    FileTooLargeError,
    InvalidFormatError,
    detect_format,
    validate_and_detect,
)


class TestDetectFormat:
    @pytest.mark.parametrize(
        "fmt,expected",
        [("JPEG", FORMAT_JPEG), ("PNG", FORMAT_PNG), ("GIF", FORMAT_GIF), ("WEBP", FORMAT_WEBP)],
    )
    def test_real_images(self, make_image, fmt, expected):
        mode = "P" if fmt == "GIF" else "RGB"
        assert detect_format(make_image(32, 32, fmt=fmt, mode=mode)) == expected

    def test_avif_brand(self):
        header = b"\x00\x00\x00\x1cftypavif" + b"\x00" * 16
        assert detect_format(header) == FORMAT_AVIF

    def test_riff_that_is_not_webp(self):
        assert detect_format(b"RIFF\x00\x00\x00\x00WAVEfmt ") is None

    def test_unknown(self):
        assert detect_format(b"<html><body></body></html>") is None


class TestValidateAndDetect:
    def test_ok(self, make_image):
        assert validate_and_detect(make_image(16, 16), 1024 * 1024) == FORMAT_PNG

    def test_too_large(self, make_image):
        with pytest.raises(FileTooLargeError):
            validate_and_detect(make_image(64, 64), 10)

    def test_too_short(self):
        with pytest.raises(InvalidFormatError):
            validate_and_detect(b"\xff\xd8\xff", 1024)

    def test_unknown_format(self):
        with pytest.raises(InvalidFormatError):
            validate_and_detect(b"just some text, not an image", 1024)
