"""Tests for path specification models."""

import pytest

from splitami.errors import InvalidInput
from splitami.models.path import (
    PathSpec,
    parse_path_specs,
    processing_order,
    validate_image_id,
)


class TestPathSpecParse:
    """Test parsing of PATH:SIZE:OPTIONS arguments."""

    def test_parse_valid(self):
        """Test parsing a well formed argument."""
        spec = PathSpec.parse("/data:20:noatime")

        assert spec.mount_path == "/data"
        assert spec.size_gib == 20
        assert spec.mount_options == "noatime"
        assert spec.volume_size == 20
        assert spec.relative_path == "data"

    def test_fractional_size_rounds_up(self):
        """Test that fractional sizes provision whole GiB."""
        spec = PathSpec.parse("/var/log:5.5:defaults,noatime")

        assert spec.size_gib == 5.5
        assert spec.volume_size == 6
        assert spec.mount_options == "defaults,noatime"

    def test_trailing_slash_stripped(self):
        """Test that a trailing slash is normalized away."""
        assert PathSpec.parse("/srv/www/:1:defaults").mount_path == "/srv/www"

    @pytest.mark.parametrize("arg, expected", [
        ("/var/./log:1:defaults", "/var/log"),
        ("//var//log:1:defaults", "/var/log"),
        ("/./data/.:1:defaults", "/data"),
    ])
    def test_path_normalized(self, arg, expected):
        """Test that redundant separators and dot segments are removed."""
        assert PathSpec.parse(arg).mount_path == expected

    def test_space_in_path_allowed(self):
        """Test that paths with spaces parse unchanged."""
        assert PathSpec.parse("/my data:1:defaults").mount_path == "/my data"

    @pytest.mark.parametrize("arg", [
        "data:20:defaults",
        "/data:abc:defaults",
        "/data:20",
        "/data:20:a:b",
        "/data:1.2.3:defaults",
        "/data:0:defaults",
        "//:1:defaults",
        "/..:1:defaults",
        "/var/../etc:1:defaults",
        "/.:1:defaults",
        "/data:1:defaults, noatime",
        "",
    ])
    def test_invalid_arguments(self, arg):
        """Test that malformed arguments are rejected."""
        with pytest.raises(InvalidInput):
            PathSpec.parse(arg)


class TestParsePathSpecs:
    """Test parsing of the full argument list."""

    def test_keeps_argument_order(self):
        """Test that specs come back in argument order."""
        specs = parse_path_specs(["/var:10:defaults", "/usr:5:ro"])

        assert [s.mount_path for s in specs] == ["/var", "/usr"]

    def test_empty_rejected(self):
        """Test that at least one spec is required."""
        with pytest.raises(InvalidInput) as exc_info:
            parse_path_specs([])

        assert "required" in str(exc_info.value)

    def test_duplicates_rejected(self):
        """Test that a path can only be split off once."""
        with pytest.raises(InvalidInput) as exc_info:
            parse_path_specs(["/var:10:defaults", "/var/:5:noatime"])

        assert "Duplicate" in str(exc_info.value)

    def test_equivalent_spellings_are_duplicates(self):
        """Test that differently spelled copies of one path are caught."""
        with pytest.raises(InvalidInput):
            parse_path_specs(["/var/./log:1:defaults", "/var/log:1:defaults"])


class TestProcessingOrder:
    """Test migration ordering."""

    def test_children_before_ancestors(self):
        """Test the documented example ordering."""
        specs = parse_path_specs(["/var:10:defaults", "/var/log:5:defaults", "/usr:5:defaults"])

        ordered = [s.mount_path for s in processing_order(specs)]

        assert ordered == ["/var/log", "/var", "/usr"]

    def test_every_prefix_after_extension(self):
        """Test that any path prefixing another is processed later."""
        paths = ["/a", "/a/b", "/a/b/c", "/a-b", "/a.b", "/b", "/a/c"]
        specs = parse_path_specs([f"{p}:1:defaults" for p in paths])

        ordered = [s.mount_path for s in processing_order(specs)]

        for parent in ordered:
            for child in ordered:
                if child.startswith(parent + "/"):
                    assert ordered.index(child) < ordered.index(parent)


class TestValidateImageId:
    """Test source image id validation."""

    def test_valid(self):
        """Test a proper AMI id."""
        assert validate_image_id("ami-0abc123def") == "ami-0abc123def"

    @pytest.mark.parametrize("image_id", ["ami-XYZ", "snap-0abc", "ami-", "", "ami-0abc "])
    def test_invalid(self, image_id):
        """Test ids that are not AMI ids."""
        with pytest.raises(InvalidInput):
            validate_image_id(image_id)
