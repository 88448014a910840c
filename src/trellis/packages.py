from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional
import json
import logging
import os

from trellis.errors import ResolutionError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
PACKAGE_PATH_ENV = "TRELLIS_PACKAGE_PATH"


@dataclass
class PackageSpec:
    """An installed package and the directories it contributes to the load path"""
    name: str
    root: Path
    require_paths: List[str] = field(default_factory=lambda: ["lib"])

    @property
    def library_dirs(self) -> List[Path]:
        return [self.root / p for p in self.require_paths]


def default_package_roots() -> List[Path]:
    roots = [Path(p) for p in os.environ.get(PACKAGE_PATH_ENV, "").split(os.pathsep) if p]
    roots.append(Path.home() / ".trellis" / "packages")
    return roots


class PackageIndex:
    """Finds packages laid out as ``<root>/<name>/package.json``"""

    def __init__(self, roots: Optional[Iterable[Path]] = None):
        self.roots = [Path(r) for r in roots] if roots is not None else default_package_roots()
        self.packages: Dict[str, PackageSpec] = {}

    def register(self, spec: PackageSpec):
        self.packages[spec.name] = spec

    def find(self, name: str) -> PackageSpec:
        if name in self.packages:
            return self.packages[name]

        for root in self.roots:
            manifest = root / name / MANIFEST_NAME
            if manifest.is_file():
                spec = self._load_manifest(name, manifest)
                self.register(spec)
                return spec

        raise ResolutionError(f"unknown package: {name}", name=name)

    def resolve(self, name: str) -> List[Path]:
        """Resolve a package name to its library directories"""
        spec = self.find(name)
        dirs = [d.resolve() for d in spec.library_dirs]
        logger.debug("Package %s provides %s", name, [str(d) for d in dirs])
        return dirs

    def _load_manifest(self, name: str, manifest: Path) -> PackageSpec:
        try:
            with open(manifest) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ResolutionError(f"cannot read manifest for package {name}: {e}", name=name) from e

        require_paths = data.get("require_paths", ["lib"]) if isinstance(data, dict) else None
        if not isinstance(require_paths, list) or not all(isinstance(p, str) for p in require_paths):
            raise ResolutionError(f"invalid require_paths in {manifest}", name=name)
        return PackageSpec(name=name, root=manifest.parent, require_paths=require_paths)
