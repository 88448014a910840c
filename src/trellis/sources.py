from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class UnitKind(Enum):
    ENTRY = "entry"
    REQUIRED = "required"
    EVAL = "eval"
    STUB = "stub"


@dataclass(frozen=True)
class ResolvedPath:
    """A logical name and the concrete source it resolved to"""
    name: str
    path: Optional[Path]
    stub: bool = False


@dataclass(frozen=True)
class SourceUnit:
    """One discrete piece of input tracked through the build"""
    kind: UnitKind
    name: Optional[str] = None
    location: Optional[Path] = None
    text: Optional[str] = None
    index: Optional[int] = None

    @property
    def identity(self) -> str:
        """How errors refer to this unit"""
        if self.kind == UnitKind.ENTRY:
            return str(self.location or self.name)
        if self.kind == UnitKind.EVAL:
            return f"eval[{self.index}]"
        return self.name

    @property
    def file_path(self) -> str:
        if self.location is not None:
            return str(self.location)
        return f"({self.identity})"


@dataclass(frozen=True)
class CompiledFragment:
    """Tape assembly for exactly one unit, plus the modules it requires"""
    unit: SourceUnit
    text: str
    requires: Tuple[str, ...] = ()
