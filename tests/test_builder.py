import io
import unittest
from pathlib import Path
from unittest import mock

from trellis.assembler import OutputAssembler
from trellis.builder import Builder
from trellis.cli import Options
from trellis.compiler import Compiler
from trellis.errors import CompilationError, ResolutionError
from trellis.path_resolver import PathResolver
from trellis.sources import CompiledFragment, SourceUnit, UnitKind

FIXTURES = Path(__file__).parent / 'fixtures'
REQUIRES = FIXTURES / 'requires'


def build(load_paths=(), stubs=(), **options):
    builder = Builder(Options.from_mapping(options), PathResolver(load_paths, stubs=stubs))
    return builder.build()


def names(fragments):
    return [fragment.unit.identity for fragment in fragments]


class TestBuilder(unittest.TestCase):
    def test_unit_order(self):
        with open(FIXTURES / 'trellis_file.rb') as f:
            fragments = build([REQUIRES], file=f, requires=['punctuation'], evals=['1', '2'])
        self.assertEqual([f.unit.kind for f in fragments],
                         [UnitKind.ENTRY, UnitKind.REQUIRED, UnitKind.EVAL, UnitKind.EVAL])
        self.assertEqual(names(fragments)[2:], ['eval[0]', 'eval[1]'])

    def test_entry_from_stream(self):
        fragment, = build(file=io.StringIO('puts "piped"'))
        self.assertEqual(fragment.unit.identity, '<stdin>')
        self.assertIn('Str("piped")', fragment.text)

    def test_dependencies_come_first(self):
        fragments = build([REQUIRES], requires=['app'])
        self.assertEqual(names(fragments), ['punctuation', 'greeting', 'app'])

    def test_each_module_is_built_once(self):
        fragments = build([REQUIRES], requires=['greeting', 'app', 'punctuation'])
        self.assertEqual(names(fragments), ['punctuation', 'greeting', 'app'])

    def test_same_file_by_path_and_by_name(self):
        absolute = str((FIXTURES / 'trellis_file.rb').resolve())
        fragments = build([FIXTURES], requires=[absolute, 'trellis_file'])
        self.assertEqual(len(fragments), 1)

    def test_cycles_terminate(self):
        fragments = build([REQUIRES], requires=['cycle_a'])
        self.assertEqual(names(fragments), ['cycle_b', 'cycle_a'])

    def test_stub_fragments_are_empty(self):
        fragment, = build(stubs=['an_unparsable_lib'], requires=['an_unparsable_lib'])
        self.assertEqual(fragment.unit.kind, UnitKind.STUB)
        self.assertEqual(fragment.text, "")

    def test_transitive_stub_is_never_compiled(self):
        compiler = Compiler()
        options = Options.from_mapping({'requires': ['uses_stub']})
        resolver = PathResolver([REQUIRES, FIXTURES], stubs=['an_unparsable_lib'])
        with mock.patch.object(compiler, 'compile_str', wraps=compiler.compile_str) as compile_str:
            fragments = Builder(options, resolver, compiler).build()
        self.assertEqual(names(fragments), ['an_unparsable_lib', 'uses_stub'])
        self.assertEqual(compile_str.call_count, 1)

    def test_requires_resolve_before_compiling(self):
        compiler = Compiler()
        options = Options.from_mapping({'requires': ['trellis_file', 'missing'], 'evals': ['puts 1']})
        with mock.patch.object(compiler, 'compile_str') as compile_str:
            with self.assertRaises(ResolutionError):
                Builder(options, PathResolver([FIXTURES]), compiler).build()
        compile_str.assert_not_called()

    def test_transitive_resolution_failure(self):
        with self.assertRaises(ResolutionError) as cm:
            build(evals=['require "nowhere"'])
        self.assertEqual(cm.exception.name, 'nowhere')

    def test_compile_error_names_the_unit(self):
        with self.assertRaises(CompilationError) as cm:
            build([FIXTURES], requires=['an_unparsable_lib'])
        self.assertEqual(cm.exception.unit, 'an_unparsable_lib')
        self.assertTrue(str(cm.exception).startswith("failed to compile an_unparsable_lib: ParseError"))


class TestOutputAssembler(unittest.TestCase):
    def fragment(self, text, kind=UnitKind.EVAL):
        return CompiledFragment(SourceUnit(kind, index=0), text)

    def test_exit_goes_into_the_last_non_empty_fragment(self):
        fragments = [self.fragment("BLOCK\n  POP\nEND"), self.fragment("", UnitKind.STUB)]
        self.assertEqual(OutputAssembler().assemble(fragments),
                         "BLOCK\n  POP\n  CALL_SELF exit, 0\nEND\nBLOCK\nEND\n")

    def test_exit_block_when_everything_is_empty(self):
        fragments = [self.fragment("", UnitKind.STUB)]
        self.assertEqual(OutputAssembler(lib_only=True).assemble(fragments),
                         "BLOCK\n  CALL_SELF exit, 0\nEND\n")

    def test_no_exit(self):
        fragments = [self.fragment("BLOCK\nEND")]
        self.assertEqual(OutputAssembler(no_exit=True).assemble(fragments), "BLOCK\nEND\nBLOCK\nEND\n")

    def test_degenerate_library(self):
        self.assertEqual(OutputAssembler(no_exit=True, lib_only=True).assemble([]), "\n")
        stubs = [self.fragment("", UnitKind.STUB), self.fragment("", UnitKind.STUB)]
        self.assertEqual(OutputAssembler(no_exit=True, lib_only=True).assemble(stubs), "\n")


if __name__ == '__main__':
    unittest.main()
