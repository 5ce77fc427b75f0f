"""Packer - build the gzipped tarball uploaded for a package.

Tarball layout follows the npm convention: every entry sits under a
`package/` directory. Entries are sorted and their metadata normalized
(fixed mtime, root ownership, 0644/0755 modes) so packing the same tree
twice yields the same bytes and therefore the same integrity hash.

File selection:
- the manifest `files` list, when present, whitelists paths (glob patterns
  or directories); package.json, README* and LICENSE* are always included
- node_modules and VCS directories are never included
"""

import fnmatch
import gzip
import io
import json
import tarfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from ..constants import MANIFEST_FILENAME, PACK_EXCLUDED_DIRS
from ..models.package import Package

logger = structlog.get_logger(__name__)

# 1985-10-26T08:15:00Z, the timestamp npm stamps on every tarball entry
_NORMALIZED_MTIME = 499162500

_ALWAYS_INCLUDED = ("package.json", "README*", "LICENSE*", "LICENCE*")


class Packer:
    """
    Produce package tarballs.

    Usage:
        tarball = Packer().pack(package, manifest=publish_manifest)
    """

    def __init__(self, excluded_dirs: Iterable[str] = PACK_EXCLUDED_DIRS) -> None:
        self.excluded_dirs = frozenset(excluded_dirs)

    def _is_whitelisted(self, relative: str, patterns: list[str]) -> bool:
        name = relative.rsplit("/", 1)[-1]
        if "/" not in relative and any(
            fnmatch.fnmatchcase(name.upper(), p.upper()) for p in _ALWAYS_INCLUDED
        ):
            return True
        for pattern in patterns:
            pattern = pattern.strip("/")
            if pattern.startswith("./"):
                pattern = pattern[2:]
            if fnmatch.fnmatchcase(relative, pattern) or relative.startswith(pattern + "/"):
                return True
        return False

    def list_files(self, package: Package) -> list[str]:
        """
        Paths (relative to the package directory) that go into the tarball.

        Returns:
            Sorted POSIX paths
        """
        whitelist = package.manifest.get("files")
        patterns = [p for p in whitelist if isinstance(p, str)] if isinstance(whitelist, list) else None

        files = []
        for path in package.path.rglob("*"):
            relative_parts = path.relative_to(package.path).parts
            if any(part in self.excluded_dirs for part in relative_parts):
                continue
            if not path.is_file():
                continue
            relative = "/".join(relative_parts)
            if patterns is not None and not self._is_whitelisted(relative, patterns):
                continue
            files.append(relative)
        return sorted(files)

    @staticmethod
    def _normalize(info: tarfile.TarInfo, executable: bool) -> tarfile.TarInfo:
        info.mtime = _NORMALIZED_MTIME
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        info.mode = 0o755 if executable else 0o644
        return info

    def pack(self, package: Package, manifest: dict[str, Any] | None = None) -> bytes:
        """
        Build the gzipped tarball of a package.

        Args:
            package: Package to pack
            manifest: package.json document to ship instead of the one on disk
                (used to publish resolved workspace ranges)

        Returns:
            Tarball bytes
        """
        buffer = io.BytesIO()
        files = self.list_files(package)
        if MANIFEST_FILENAME not in files:
            files = sorted([*files, MANIFEST_FILENAME])

        # mtime=0 in the gzip header keeps the archive reproducible
        with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as gz:
            with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
                for relative in files:
                    if relative == MANIFEST_FILENAME:
                        document = manifest if manifest is not None else package.manifest
                        data = (json.dumps(document, indent=2, ensure_ascii=False) + "\n").encode(
                            "utf-8"
                        )
                        info = self._normalize(tarfile.TarInfo(f"package/{relative}"), False)
                        info.size = len(data)
                        tar.addfile(info, io.BytesIO(data))
                        continue

                    source = package.path / relative
                    info = tar.gettarinfo(str(source), arcname=f"package/{relative}")
                    executable = bool(source.stat().st_mode & 0o111)
                    with open(source, "rb") as f:
                        tar.addfile(self._normalize(info, executable), f)

        tarball = buffer.getvalue()
        logger.debug("Packed package", package=package.name, files=len(files), size=len(tarball))
        return tarball
