"""
Detecting the library's own version.

The codebase does not contain the version directly: the releases depend
on tagging rather than in-code version bumps.

The version is determined only once at startup when the code is loaded.
"""
import importlib.metadata
from typing import Optional

version: Optional[str] = None

try:
    name, *_ = __name__.split('.')  # usually "kreflector", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # not installed, e.g. run from the source tree.
