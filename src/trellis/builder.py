from pathlib import Path
from typing import Iterator, List, Optional, Set
import logging

from trellis.compiler import Compiler
from trellis.errors import CompileError, CompilationError, ResolutionError
from trellis.path_resolver import PathResolver, SOURCE_SUFFIX
from trellis.sources import CompiledFragment, SourceUnit, UnitKind

logger = logging.getLogger(__name__)


class SourceSet:
    """Units in build order: the entry file, then requires, then evals"""

    def __init__(self):
        self.units: List[SourceUnit] = []

    def add(self, unit: SourceUnit):
        self.units.append(unit)

    def __iter__(self) -> Iterator[SourceUnit]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)


def read_entry(file) -> SourceUnit:
    """Make the entry unit from an open text handle or a path"""
    if hasattr(file, "read"):
        text = file.read()
        name = getattr(file, "name", None)
        if isinstance(name, str) and Path(name).is_file():
            location = Path(name).resolve()
            return SourceUnit(UnitKind.ENTRY, name=name, location=location, text=text)
        return SourceUnit(UnitKind.ENTRY, name=name if isinstance(name, str) else "<stdin>", text=text)

    path = Path(file)
    try:
        text = path.read_text()
    except OSError as e:
        raise ResolutionError(f"cannot read {path}: {e.strerror}", name=str(path)) from e
    return SourceUnit(UnitKind.ENTRY, name=str(path), location=path.resolve(), text=text)


class Builder:
    """Compiles every unit of a run into tape assembly fragments.

    Literal ``require "name"`` calls are followed transitively: a unit's
    dependencies are built before the unit itself, and each resolved file
    or stub is built once per run, so cycles terminate.
    """

    def __init__(self, options, path_reader: PathResolver, compiler: Optional[Compiler] = None):
        self.options = options
        self.path_reader = path_reader
        self.compiler = compiler or Compiler()
        self.fragments: List[CompiledFragment] = []
        self.built: Set = set()
        self.in_progress: Set = set()

    def source_set(self) -> SourceSet:
        units = SourceSet()
        if self.options.file is not None:
            units.add(read_entry(self.options.file))
        # Every explicit require must resolve before anything is compiled
        for name in self.options.requires:
            units.add(self.required_unit(name))
        for index, code in enumerate(self.options.evals):
            units.add(SourceUnit(UnitKind.EVAL, text=code, index=index))
        return units

    def required_unit(self, name: str) -> SourceUnit:
        resolved = self.path_reader.resolve(name)
        if resolved.stub:
            return SourceUnit(UnitKind.STUB, name=name)
        return SourceUnit(UnitKind.REQUIRED, name=name, location=resolved.path)

    def build(self) -> List[CompiledFragment]:
        """Compile the whole source set, returning fragments in build order"""
        self.fragments = []
        self.built = set()
        self.in_progress = set()

        units = self.source_set()
        logger.debug("Building %d units", len(units))
        for unit in units:
            self.build_unit(unit)
        return self.fragments

    def build_unit(self, unit: SourceUnit):
        key = unit_key(unit)
        if key is not None:
            if key in self.built or key in self.in_progress:
                logger.debug("Skipping %s, already built", unit.identity)
                return
            self.in_progress.add(key)

        fragment = self.compile_unit(unit)

        # Dependencies first
        for name in fragment.requires:
            self.build_unit(self.required_unit(name))

        logger.debug("Built %s (%s)", unit.identity, unit.kind.value)
        self.fragments.append(fragment)
        if key is not None:
            self.in_progress.discard(key)
            self.built.add(key)

    def compile_unit(self, unit: SourceUnit) -> CompiledFragment:
        if unit.kind == UnitKind.STUB:
            return CompiledFragment(unit, "")

        text = unit.text
        if text is None:
            try:
                text = unit.location.read_text()
            except OSError as e:
                raise ResolutionError(f"cannot read {unit.location}: {e.strerror}", name=unit.name) from e

        try:
            result = self.compiler.compile_str(text, unit.file_path)
        except CompileError as e:
            raise CompilationError(unit.identity, e) from e
        return CompiledFragment(unit, result.text, result.requires)


def unit_key(unit: SourceUnit):
    """What makes two units the same module, or None if every copy counts"""
    if unit.kind == UnitKind.STUB:
        name = unit.name
        if name.endswith(SOURCE_SUFFIX):
            name = name[:-len(SOURCE_SUFFIX)]
        return ("stub", name)
    if unit.location is not None:
        return ("file", unit.location)
    return None
