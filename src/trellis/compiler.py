from dataclasses import dataclass
from typing import Tuple
import logging

from trellis.parser import Parser
from trellis.codegen import CodeGenerator
from trellis.trellis_ast import Program

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileResult:
    text: str
    requires: Tuple[str, ...]


class Compiler:
    """Compiles one unit of Trellis source to tape assembly.

    Units are compiled in isolation; a unit never sees another unit's output.
    """

    def __init__(self):
        self.parser = Parser()
        self.code_gen = CodeGenerator()

    def parse(self, source: str, file_path: str = "<string>") -> Program:
        return self.parser.parse(source, file_path=file_path)

    def compile_str(self, source: str, file_path: str = "<string>") -> CompileResult:
        """Compile a string of Trellis code.

        Raises CompileError for lexical and syntax errors.
        """
        program = self.parse(source, file_path)
        text = self.code_gen.generate(program)
        requires = tuple(self.code_gen.requires)
        logger.debug("Compiled %s (%d statements, requires %s)",
                     file_path, len(program.statements), list(requires))
        return CompileResult(text, requires)
