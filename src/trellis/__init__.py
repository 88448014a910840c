"""Trellis: compile Ruby-flavoured scripts to tape assembly and run them."""

from trellis.cli import CLI, Mode, Options, main
from trellis.errors import (
    CompilationError,
    ConfigurationError,
    ExecutionFault,
    ResolutionError,
    TrellisError,
)

__version__ = "0.1.0"
