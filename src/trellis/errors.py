from dataclasses import dataclass, field
from typing import List, Optional, Any


@dataclass
class SourceLocation:
    """Location in source code"""
    file: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class CompileError(Exception):
    """Detailed compile error with source location and context"""
    message: str
    error_type: str = "CompilationError"  # e.g. "LexError", "ParseError"
    location: Optional[SourceLocation] = None
    node: Optional[Any] = None
    context: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        parts = []

        loc = str(self.location) if self.location else "unknown location"
        parts.append(f"{self.error_type} at {loc}: {self.message}")

        if self.context:
            parts.append("\nContext:")
            parts.append(self.context)

        if self.notes:
            parts.append("\nNotes:")
            parts.extend(f"  - {note}" for note in self.notes)

        return "\n".join(parts)


class TrellisError(Exception):
    """Base class for every error that aborts a driver invocation"""
    exit_status = 1


class ConfigurationError(TrellisError, ValueError):
    """Invalid or contradictory option combination"""
    exit_status = 2


class ResolutionError(TrellisError, LookupError):
    """A required module or package could not be found"""
    exit_status = 3

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class CompilationError(TrellisError):
    """A source unit failed to compile"""
    exit_status = 4

    def __init__(self, unit: str, cause: CompileError):
        super().__init__(f"failed to compile {unit}: {cause.error_type}: {cause.message}")
        self.unit = unit
        self.cause = cause


class ExecutionFault(TrellisError, RuntimeError):
    """The generated program raised an uncaught error while running"""
    exit_status = 5


def get_source_context(source: str, line: int, context_lines: int = 2) -> Optional[str]:
    """Get source code context around a line of ``source``"""
    lines = source.splitlines()
    if not lines or line < 1 or line > len(lines):
        return None

    start = max(0, line - context_lines - 1)
    end = min(len(lines), line + context_lines)

    context = []
    for i in range(start, end):
        line_num = i + 1
        prefix = '> ' if line_num == line else '  '
        context.append(f"{prefix}{line_num:4d} | {lines[i].rstrip()}")

    return '\n'.join(context)
