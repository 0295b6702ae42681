#!/usr/bin/env python3
"""Setup script for api-compat-checker."""

import re
from pathlib import Path

from setuptools import find_packages, setup

# Read README
root = Path(__file__).parent
readme_file = root / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

# Single-source version from package
version_file = root / "apicompat" / "__init__.py"
version_match = re.search(
    r"^__version__\s*=\s*[\"']([^\"']+)[\"']",
    version_file.read_text(),
    re.MULTILINE,
)
if not version_match:
    raise RuntimeError("Unable to find __version__ in apicompat/__init__.py")
package_version = version_match.group(1)

setup(
    name="api-compat-checker",
    version=package_version,
    description="API surface compatibility checker for Python libraries",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "packaging>=22.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "apicompat=apicompat.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Software Development :: Quality Assurance",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="api compatibility checker semver breaking-changes wheel",
)
