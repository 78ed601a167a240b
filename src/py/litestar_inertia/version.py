"""Asset version detection and caching.

The Inertia client sends the asset version it was built against with every
request; a mismatch forces a full page reload. The version is computed once per
application and cached until :meth:`AssetVersionCache.invalidate` is called, for
instance after a rebuild in development.
"""

import hashlib
import logging
import threading
from collections.abc import Callable, Hashable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from litestar_inertia.config import DEFAULT_ASSETS_VERSION

if TYPE_CHECKING:
    from litestar_inertia.config import InertiaConfig

__all__ = ("AssetVersionCache", "compute_assets_version", "manifest_version")

logger = logging.getLogger("litestar_inertia")


class AssetVersionCache:
    """Thread-safe compute-once cache.

    Concurrent readers of a key see a single value per cache generation: the first
    caller computes it while holding the lock, later callers read the stored value.
    """

    __slots__ = ("_lock", "_values")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: "dict[Hashable, Any]" = {}

    def get(self, key: Hashable, compute: "Callable[[], Any]") -> Any:
        """Return the cached value for ``key``, computing it on first access.

        Args:
            key: The cache key.
            compute: Called (once per generation) to produce the value.

        Returns:
            The cached value.
        """
        try:
            return self._values[key]
        except KeyError:
            pass
        with self._lock:
            if key not in self._values:
                self._values[key] = compute()
            return self._values[key]

    def invalidate(self, key: "Hashable | None" = None) -> None:
        """Drop ``key`` (or every key) so the next access recomputes it."""
        with self._lock:
            if key is None:
                self._values.clear()
            else:
                self._values.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values


def manifest_version(manifest_paths: "Iterable[Path | str]") -> "str | None":
    """Hash the first existing build manifest.

    Args:
        manifest_paths: Candidate manifest files, in order of preference.

    Returns:
        The sha256 digest of the manifest content, or None if no manifest exists.
    """
    for candidate in manifest_paths:
        path = Path(candidate)
        if path.is_file():
            return hashlib.sha256(path.read_bytes()).hexdigest()
    return None


def compute_assets_version(config: "InertiaConfig") -> str:
    """Compute the current asset version from configuration.

    Precedence: static string, then callable, then build manifest, then ``"1"``.

    Returns:
        The asset version.
    """
    if isinstance(config.assets_version, str):
        return config.assets_version
    if callable(config.assets_version):
        return str(config.assets_version())
    version = manifest_version(config.manifest_paths)
    if version is None:
        logger.debug("No build manifest found, using default asset version %r", DEFAULT_ASSETS_VERSION)
        return DEFAULT_ASSETS_VERSION
    return version
