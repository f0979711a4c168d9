"""Catalog of Unity packages whose offline documentation can be fetched."""

from __future__ import annotations

from pathlib import Path

from unity_docs_mcp.domain.model import PackageCategory, PackageInfo
from unity_docs_mcp.errors import UnknownPackageError


PACKAGE_DOCS_ROOT = "https://docs.unity3d.com/Packages"

CATEGORY_ORDER: dict[str, int] = {"core": 1, "popular": 2, "specialized": 3}
RECOMMENDED_MAX_PRIORITY = 3


def _package(
    name: str,
    version: str,
    display_name: str,
    category: PackageCategory,
    priority: int,
    estimated_size: str,
    description: str,
) -> PackageInfo:
    docs_version = ".".join(version.split(".")[:2])
    documentation_url = f"{PACKAGE_DOCS_ROOT}/{name}@{docs_version}/"
    return PackageInfo(
        name=name,
        version=version,
        display_name=display_name,
        category=category,
        priority=priority,
        estimated_size=estimated_size,
        description=description,
        documentation_url=documentation_url,
        offline_url=f"{documentation_url}{name}.zip",
    )


KNOWN_PACKAGES: dict[str, PackageInfo] = {
    package.name: package
    for package in (
        _package(
            "com.unity.inputsystem", "1.11.0", "Unity Input System", "core", 1, "12MB",
            "Modern input handling system for Unity",
        ),
        _package(
            "com.unity.render-pipelines.universal", "17.0.3", "Universal Render Pipeline (URP)", "core", 2, "15MB",
            "Optimized render pipeline for various platforms",
        ),
        _package(
            "com.unity.cinemachine", "2.10.0", "Cinemachine", "core", 3, "8MB",
            "Smart camera system for Unity",
        ),
        _package(
            "com.unity.entities", "1.3.14", "Unity ECS (Entities)", "popular", 1, "25MB",
            "Data-oriented technology stack for high-performance gameplay",
        ),
        _package(
            "com.unity.addressables", "1.21.21", "Addressables", "popular", 2, "10MB",
            "Asset management system for Unity",
        ),
        _package(
            "com.unity.timeline", "1.8.7", "Timeline", "popular", 3, "6MB",
            "Visual tool for creating cinematic sequences",
        ),
        _package(
            "com.unity.animation.rigging", "1.3.1", "Animation Rigging", "popular", 4, "7MB",
            "Runtime character rigging and animation",
        ),
        _package(
            "com.unity.render-pipelines.high-definition", "17.0.3", "High Definition Render Pipeline (HDRP)",
            "specialized", 1, "20MB",
            "High-fidelity rendering for high-end platforms",
        ),
        _package(
            "com.unity.netcode.gameobjects", "1.12.0", "Netcode for GameObjects", "specialized", 2, "18MB",
            "Networking solution for Unity",
        ),
        _package(
            "com.unity.xr.interaction.toolkit", "3.0.7", "XR Interaction Toolkit", "specialized", 3, "14MB",
            "Framework for creating XR interactions",
        ),
        _package(
            "com.unity.ai.navigation", "1.1.5", "AI Navigation", "specialized", 4, "5MB",
            "AI pathfinding and navigation system",
        ),
    )
}


class PackageCatalog:
    """Lookups over the known packages and their on-disk documentation.

    Extracted docs live at ``<packages_dir>/<name>/<version>/``.
    """

    def __init__(self, packages_dir: Path, packages: dict[str, PackageInfo] | None = None) -> None:
        self.packages_dir = Path(packages_dir)
        self._packages = dict(KNOWN_PACKAGES if packages is None else packages)

    def list_packages(self) -> list[PackageInfo]:
        return list(self._packages.values())

    def get(self, name: str) -> PackageInfo | None:
        return self._packages.get(name)

    def require(self, name: str) -> PackageInfo:
        package = self._packages.get(name)
        if package is None:
            raise UnknownPackageError(name)
        return package

    def by_category(self, category: PackageCategory) -> list[PackageInfo]:
        return sorted(
            (package for package in self._packages.values() if package.category == category),
            key=lambda package: package.priority,
        )

    def recommended(self, max_count: int = 5) -> list[PackageInfo]:
        """High-priority packages, core first."""
        candidates = [p for p in self._packages.values() if p.priority <= RECOMMENDED_MAX_PRIORITY]
        candidates.sort(key=lambda p: (CATEGORY_ORDER[p.category], p.priority))
        return candidates[:max_count]

    def extract_path(self, name: str, version: str) -> Path:
        return self.packages_dir / name / version

    def docs_path(self, name: str, version: str | None = None) -> Path | None:
        """Extracted documentation directory, or None when not downloaded."""
        package = self._packages.get(name)
        if package is None:
            return None
        path = self.extract_path(name, version or package.version)
        return path if path.exists() else None

    def is_downloaded(self, name: str) -> bool:
        return self.docs_path(name) is not None

    def download_statistics(self) -> dict:
        categories = {category: {"total": 0, "downloaded": 0} for category in CATEGORY_ORDER}
        downloaded = 0
        for package in self._packages.values():
            categories[package.category]["total"] += 1
            if self.is_downloaded(package.name):
                downloaded += 1
                categories[package.category]["downloaded"] += 1
        total_mb = sum(package.estimated_size_mb for package in self._packages.values())
        return {
            "total": len(self._packages),
            "downloaded": downloaded,
            "categories": categories,
            "estimated_total_size": f"{total_mb}MB",
        }
