"""Unit tests for package_spec module."""

import tempfile
import unittest
from pathlib import Path
from apicompat.package_spec import PackageSpec, validate_spec


class TestPackageSpec(unittest.TestCase):
    """Test PackageSpec parser."""

    def test_standard_format(self):
        """Test standard channel:package=version format."""
        spec = PackageSpec.parse("pypi:requests=2.31.0")
        self.assertEqual(spec.channel, "pypi")
        self.assertEqual(spec.package, "requests")
        self.assertEqual(spec.version, "2.31.0")
        self.assertIsNone(spec.path)

    def test_string_representation(self):
        """Test __str__ method."""
        spec = PackageSpec.parse("pypi:requests=2.31.0")
        self.assertEqual(str(spec), "pypi:requests==2.31.0")

    def test_pip_style_pin(self):
        """The == operator pip uses is accepted."""
        spec = PackageSpec.parse("pypi:requests==2.31.0")
        self.assertEqual(spec.package, "requests")
        self.assertEqual(spec.version, "2.31.0")
        self.assertEqual(spec.requirement, "requests==2.31.0")

    def test_name_is_normalized(self):
        spec = PackageSpec.parse("pypi:Zope.Interface_Tools==1.0")
        self.assertEqual(spec.package, "zope-interface-tools")

    def test_version_is_normalized(self):
        spec = PackageSpec.parse("pypi:mylib==2.0.0RC1")
        self.assertEqual(spec.version, "2.0.0rc1")

    def test_invalid_version(self):
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("pypi:requests==latest")
        self.assertIn("Invalid version", str(cm.exception))

    def test_invalid_name(self):
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("pypi:-requests==1.0")
        self.assertIn("Invalid package name", str(cm.exception))

    def test_range_specifiers_rejected(self):
        for text in ("pypi:requests>=2.0", "pypi:requests~=2.0", "pypi:requests!=2.0"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError) as cm:
                    PackageSpec.parse(text)
                self.assertIn("exact pins", str(cm.exception))

    def test_versionless_allowed_when_not_required(self):
        spec = PackageSpec.parse("pypi:requests", require_version=False)
        self.assertEqual(spec.package, "requests")
        self.assertIsNone(spec.version)
        self.assertEqual(str(spec), "pypi:requests")

    def test_missing_colon(self):
        """Test error on missing colon."""
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("invalid-spec")
        self.assertIn("Invalid package spec", str(cm.exception))

    def test_missing_version(self):
        """Test error on missing version."""
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("pypi:requests")
        self.assertIn("Invalid package spec", str(cm.exception))

    def test_empty_package(self):
        """Test error on empty package name."""
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("pypi:=2.31.0")
        self.assertIn("Empty package name", str(cm.exception))

    def test_empty_version(self):
        """Test error on empty version."""
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("pypi:requests=")
        self.assertIn("Empty version", str(cm.exception))

    def test_whitespace_handling(self):
        """Test that whitespace is stripped."""
        spec = PackageSpec.parse("  pypi : requests = 2.31.0  ")
        self.assertEqual(spec.channel, "pypi")
        self.assertEqual(spec.package, "requests")
        self.assertEqual(spec.version, "2.31.0")

    def test_validate_spec_valid(self):
        """Test validate_spec with valid input."""
        self.assertTrue(validate_spec("pypi:requests=2.31.0"))

    def test_validate_spec_invalid(self):
        """Test validate_spec with invalid input."""
        self.assertFalse(validate_spec("invalid"))
        self.assertFalse(validate_spec("pypi:requests"))
        self.assertTrue(validate_spec("pypi:requests", require_version=False))

    def test_local_path(self):
        """Test local:/path parsing."""
        with tempfile.NamedTemporaryFile(suffix=".whl") as tmp:
            spec = PackageSpec.parse(f"local:{tmp.name}")
            self.assertEqual(spec.channel, "local")
            self.assertEqual(spec.path, Path(tmp.name).resolve())
            self.assertEqual(spec.package, Path(tmp.name).stem)
            self.assertIsNone(spec.version)
            self.assertEqual(str(spec), f"local:{Path(tmp.name).resolve()}")

    def test_local_path_missing(self):
        """Test local path validation when file does not exist."""
        self.assertFalse(validate_spec("local:/definitely/not/found/mylib.whl"))

    def test_local_path_directory(self):
        """Source directories are valid local artifacts."""
        with tempfile.TemporaryDirectory() as tmpdir:
            spec = PackageSpec.parse(f"local:{tmpdir}")
            self.assertEqual(spec.path, Path(tmpdir).resolve())
            self.assertEqual(spec.package, Path(tmpdir).resolve().name)

    def test_local_requires_path(self):
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("local:")
        self.assertIn("requires a path", str(cm.exception))

    def test_unsupported_channel(self):
        """Test unsupported channel is rejected."""
        with self.assertRaises(ValueError) as cm:
            PackageSpec.parse("conda-forge:dal=2025.9.0")
        self.assertIn("Unsupported channel", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
