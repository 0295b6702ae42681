"""Factory for creating source adapters from PackageSpec channel."""

from typing import Optional

from .base import PackageSource
from .local import LocalSource
from .pypi import PyPISource
from ..package_spec import PackageSpec


def create_source(spec: PackageSpec, index_url: Optional[str] = None) -> PackageSource:
    """Create the appropriate PackageSource implementation for a PackageSpec.

    Mapping:
    - pypi  -> PyPISource(index_url or https://pypi.org)
    - local -> LocalSource()
    """
    if spec.channel == "pypi":
        return PyPISource(index_url=index_url)
    if spec.channel == "local":
        return LocalSource()

    raise ValueError(f"Unsupported source channel: {spec.channel}")
