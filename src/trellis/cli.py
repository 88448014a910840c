from dataclasses import dataclass, fields
from enum import Enum, auto
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple
import argparse
import logging
import sys

from trellis.assembler import OutputAssembler
from trellis.builder import Builder, read_entry
from trellis.compiler import Compiler
from trellis.errors import CompileError, CompilationError, ConfigurationError, TrellisError
from trellis.packages import PackageIndex
from trellis.path_resolver import PathResolver
from trellis.sexp import TreePrinter
from trellis.tape_vm import Runtime

logger = logging.getLogger(__name__)

SEQUENCE_OPTIONS = ("evals", "requires", "load_paths", "packages", "stubs")


@dataclass(frozen=True)
class Options:
    """Options for one driver invocation"""
    file: Any = None  # open text handle or path
    evals: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()
    load_paths: Tuple[str, ...] = ()
    packages: Tuple[str, ...] = ()
    stubs: Tuple[str, ...] = ()
    lib_only: bool = False
    no_exit: bool = False
    compile: bool = False
    sexp: bool = False
    verbose: bool = False
    output: Optional[str] = None  # compile mode only

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Options":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}")

        values = dict(mapping)
        for name in SEQUENCE_OPTIONS:
            if name in values:
                value = values[name] or ()
                values[name] = (value,) if isinstance(value, str) else tuple(value)
        return cls(**values)


class Mode(Enum):
    ASSEMBLE_AND_PRINT = auto()
    ASSEMBLE_AND_EXECUTE = auto()
    PRINT_SYNTAX_TREE = auto()


class CLI:
    """Validates options, then compiles, prints or runs the program.

    Output goes to ``stdout``, which defaults to the class attribute so a
    caller can redirect every instance at once.
    """
    stdout = sys.stdout

    def __init__(self, options=None, stdout=None, package_index: Optional[PackageIndex] = None):
        if not isinstance(options, Options):
            options = Options.from_mapping(options or {})
        self.options = options
        if stdout is not None:
            self.stdout = stdout
        self.package_index = package_index
        # Kept for callers that inspect it; it changes nothing else
        self.verbose = options.verbose
        self.compiler = Compiler()

    def validate(self) -> Mode:
        """Check the option combination and pick the mode. First violation wins."""
        opts = self.options
        has_source = opts.file is not None or bool(opts.evals)

        if opts.sexp:
            if not has_source:
                raise ConfigurationError("--sexp needs a file or at least one eval")
            if opts.lib_only:
                raise ConfigurationError("--sexp cannot be combined with library-only mode")
            return Mode.PRINT_SYNTAX_TREE

        if opts.lib_only:
            if has_source:
                raise ConfigurationError("library-only mode does not accept a file or evals")
        elif not has_source and not opts.requires:
            raise ConfigurationError("nothing to do: give a file, an eval or a require")

        return Mode.ASSEMBLE_AND_PRINT if opts.compile else Mode.ASSEMBLE_AND_EXECUTE

    def path_resolver(self) -> PathResolver:
        opts = self.options
        return PathResolver(opts.load_paths, opts.packages, opts.stubs,
                            package_index=self.package_index)

    def build(self) -> Builder:
        """Validate and compile every unit, returning the Builder that did it"""
        self.validate()
        builder = Builder(self.options, self.path_resolver(), self.compiler)
        builder.build()
        return builder

    def assemble(self) -> str:
        builder = self.build()
        assembler = OutputAssembler(no_exit=self.options.no_exit, lib_only=self.options.lib_only)
        return assembler.assemble(builder.fragments)

    def run(self) -> int:
        """Run in the validated mode and return the exit status"""
        mode = self.validate()
        logger.debug("Running in %s mode", mode.name)

        if mode == Mode.PRINT_SYNTAX_TREE:
            self.print_syntax_tree()
            return 0

        text = self.assemble()
        if mode == Mode.ASSEMBLE_AND_PRINT:
            if self.options.output:
                Path(self.options.output).write_text(text)
                logger.debug("Wrote %s", self.options.output)
            else:
                self.stdout.write(text)
            return 0

        return Runtime(self.stdout).execute(text)

    def print_syntax_tree(self):
        sources: List[Tuple[str, str, str]] = []
        if self.options.file is not None:
            entry = read_entry(self.options.file)
            sources.append((entry.identity, entry.text, entry.file_path))
        for index, code in enumerate(self.options.evals):
            sources.append((f"eval[{index}]", code, f"(eval[{index}])"))

        printer = TreePrinter(self.compiler)
        lines = []
        for identity, text, file_path in sources:
            try:
                lines.extend(printer.parse(text, file_path))
            except CompileError as e:
                raise CompilationError(identity, e) from e

        # Nothing is written unless every source parsed
        for line in lines:
            self.stdout.write(line + "\n")


def main(argv=None) -> int:
    """CLI entry point"""
    parser = argparse.ArgumentParser(prog="trellis",
                                     description="Trellis compiler and tape VM runner")
    parser.add_argument('file', nargs='?', help='Entry source file ("-" reads stdin)')
    parser.add_argument('-e', '--eval', dest='evals', action='append', default=[], metavar='CODE',
                        help='Code to run after the file and requires (repeatable)')
    parser.add_argument('-r', '--require', dest='requires', action='append', default=[], metavar='NAME',
                        help='Module to require (repeatable)')
    parser.add_argument('-I', '--include', dest='load_paths', action='append', default=[], metavar='DIR',
                        help='Add a directory to the load path (repeatable)')
    parser.add_argument('-g', '--package', dest='packages', action='append', default=[], metavar='NAME',
                        help="Add a package's library directories to the load path (repeatable)")
    parser.add_argument('-s', '--stub', dest='stubs', action='append', default=[], metavar='NAME',
                        help='Satisfy a require with an empty module (repeatable)')
    parser.add_argument('-L', '--library', dest='lib_only', action='store_true',
                        help='Library-only build: no file or evals, no hook block')
    parser.add_argument('-E', '--no-exit', dest='no_exit', action='store_true',
                        help='Do not append the exit call')
    parser.add_argument('-c', '--compile', action='store_true',
                        help='Print the tape assembly instead of running it')
    parser.add_argument('--sexp', action='store_true',
                        help='Print the syntax tree of each top-level expression')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Set the verbose flag')
    parser.add_argument('-o', '--output', help='Write compiled output to this file')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(name)s - %(levelname)s - %(message)s',
    )

    options = Options(
        file=sys.stdin if args.file == '-' else args.file,
        evals=tuple(args.evals),
        requires=tuple(args.requires),
        load_paths=tuple(args.load_paths),
        packages=tuple(args.packages),
        stubs=tuple(args.stubs),
        lib_only=args.lib_only,
        no_exit=args.no_exit,
        compile=args.compile,
        sexp=args.sexp,
        verbose=args.verbose,
        output=args.output,
    )

    try:
        return CLI(options, stdout=sys.stdout).run()
    except TrellisError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_status


if __name__ == "__main__":
    sys.exit(main())
