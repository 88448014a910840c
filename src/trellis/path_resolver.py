from pathlib import Path
from typing import Dict, Iterable, List, Optional
import logging

from trellis.errors import ResolutionError
from trellis.packages import PackageIndex
from trellis.sources import ResolvedPath

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".rb"


class AbsolutePathStrategy:
    """Absolute paths are taken as-is, never searched"""
    kind = "absolute"

    def try_resolve(self, name: str) -> Optional[ResolvedPath]:
        path = Path(name)
        if not path.is_absolute():
            return None
        if not path.is_file():
            raise ResolutionError(f"unresolved require: {name}", name=name)
        return ResolvedPath(name, path.resolve())


class StubStrategy:
    """Stubbed names resolve to an empty unit without touching the filesystem"""
    kind = "stub"

    def __init__(self, stubs: Iterable[str]):
        self.stubs = frozenset(stubs)

    def matches(self, name: str) -> bool:
        if name in self.stubs:
            return True
        if name.endswith(SOURCE_SUFFIX):
            return name[:-len(SOURCE_SUFFIX)] in self.stubs
        return name + SOURCE_SUFFIX in self.stubs

    def try_resolve(self, name: str) -> Optional[ResolvedPath]:
        if self.matches(name):
            return ResolvedPath(name, None, stub=True)
        return None


class SearchRootStrategy:
    """Looks for ``root/name`` and ``root/name.rb``"""
    kind = "root"

    def __init__(self, root: Path):
        self.root = root

    def try_resolve(self, name: str) -> Optional[ResolvedPath]:
        for candidate in (self.root / name, self.root / (name + SOURCE_SUFFIX)):
            if candidate.is_file():
                return ResolvedPath(name, candidate.resolve())
        return None


class PathResolver:
    """Resolves logical module names against load paths, package paths and stubs.

    Strategies are tried in order and the first match wins: absolute paths,
    then stubs, then every search root in priority order (explicit load paths
    first, then the library directories of each package).
    """

    def __init__(self, load_paths: Iterable = (), packages: Iterable[str] = (),
                 stubs: Iterable[str] = (), package_index: Optional[PackageIndex] = None):
        self.roots: List[Path] = [Path(p) for p in load_paths]
        packages = list(packages)
        if packages:
            index = package_index or PackageIndex()
            for name in packages:
                # Unknown packages fail here rather than on first use
                self.roots.extend(index.resolve(name))

        self.stub_strategy = StubStrategy(stubs)
        self.strategies = [AbsolutePathStrategy(), self.stub_strategy]
        self.strategies.extend(SearchRootStrategy(root) for root in self.roots)
        self._cache: Dict[str, ResolvedPath] = {}

    @property
    def paths(self) -> List[str]:
        return [str(root) for root in self.roots]

    @property
    def stubs(self) -> frozenset:
        return self.stub_strategy.stubs

    def is_stub(self, name: str) -> bool:
        return self.stub_strategy.matches(name)

    def resolve(self, name: str) -> ResolvedPath:
        if name in self._cache:
            return self._cache[name]

        for strategy in self.strategies:
            resolved = strategy.try_resolve(name)
            if resolved is not None:
                logger.debug("Resolved %s via %s: %s", name, strategy.kind, resolved.path)
                self._cache[name] = resolved
                return resolved

        raise ResolutionError(f"unresolved require: {name}", name=name)
