"""Lightweight, cached dependency checks for fsspec storage backends."""

from __future__ import annotations

from functools import lru_cache
import importlib.metadata as md

from .exceptions import (
    MissingDependencyError,
    DependencyVersionError,
)


# fsspec protocol -> (distribution name, minimum version)
# Minimums match the s3, gcs and azure extras in pyproject.toml.
BACKEND_MIN_VERSION = "2023.1.0"
PROTOCOL_DEPENDENCIES: dict[str, tuple[str, str | None]] = {
    "s3": ("s3fs", BACKEND_MIN_VERSION),
    "s3a": ("s3fs", BACKEND_MIN_VERSION),
    "gs": ("gcsfs", BACKEND_MIN_VERSION),
    "gcs": ("gcsfs", BACKEND_MIN_VERSION),
    "az": ("adlfs", BACKEND_MIN_VERSION),
    "abfs": ("adlfs", BACKEND_MIN_VERSION),
    "abfss": ("adlfs", BACKEND_MIN_VERSION),
}


@lru_cache(maxsize=None)
def _get_installed_version(package_name: str) -> str | None:
    """Return installed version for `package_name` or `None` if missing."""

    try:
        return md.version(package_name)
    except md.PackageNotFoundError:
        return None


def _normalize_version(version: str) -> tuple[int, ...]:
    """Normalize a dotted version string into a tuple of integers.

    Parsing stops at the first non-numeric segment, so "2024.3.1rc1"
    normalizes to (2024, 3).
    """

    parts: list[int] = []
    for token in version.split("."):
        if not token.isdigit():
            break
        parts.append(int(token))
    return tuple(parts)


def _meets_min_version(installed: str, minimum: str) -> bool:
    inst = _normalize_version(installed)
    minv = _normalize_version(minimum)
    if inst and minv:
        length = max(len(inst), len(minv))
        inst_pad = inst + (0,) * (length - len(inst))
        minv_pad = minv + (0,) * (length - len(minv))
        return inst_pad >= minv_pad
    return installed >= minimum


def _format_install_hint(package_name: str, min_version: str | None) -> str:
    constraint = f">={min_version}" if min_version else ""
    return f"pip install '{package_name}{constraint}'"


def ensure_dependency(package_name: str, min_version: str | None = None) -> None:
    """Ensure `package_name` is available and meets `min_version` if given.

    Raises:
        MissingDependencyError: When the required dependency is not available.
        DependencyVersionError: When the required dependency version is below the minimum.
    """

    installed = _get_installed_version(package_name)
    if installed is None:
        needed = f" (>= {min_version})" if min_version else ""
        raise MissingDependencyError(
            f"Dependency '{package_name}'{needed} is required but not installed.",
            suggestions=[_format_install_hint(package_name, min_version)],
        )

    if min_version and not _meets_min_version(installed, min_version):
        raise DependencyVersionError(
            f"Dependency '{package_name}' must be >= {min_version}, "
            f"found {installed}.",
            suggestions=[_format_install_hint(package_name, min_version)],
        )


def ensure_protocol_dependency(url: str) -> None:
    """Ensure the fsspec backend for the protocol of `url` is installed.

    Local paths and protocols bundled with fsspec itself (``file``,
    ``memory``) need nothing extra.
    """

    protocol = url.split("://", 1)[0] if "://" in url else "file"
    requirement = PROTOCOL_DEPENDENCIES.get(protocol)
    if requirement is not None:
        ensure_dependency(*requirement)
