import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from trellis.errors import ResolutionError
from trellis.packages import PACKAGE_PATH_ENV, PackageIndex, PackageSpec
from trellis.path_resolver import PathResolver

FIXTURES = Path(__file__).parent / 'fixtures'
PACKAGES = FIXTURES / 'packages'


class TestPathResolver(unittest.TestCase):
    def test_load_path_with_and_without_suffix(self):
        resolver = PathResolver([FIXTURES])
        self.assertEqual(resolver.resolve('trellis_file').path, (FIXTURES / 'trellis_file.rb').resolve())
        self.assertEqual(resolver.resolve('trellis_file.rb').path, (FIXTURES / 'trellis_file.rb').resolve())

    def test_nested_name(self):
        resolver = PathResolver([FIXTURES])
        self.assertEqual(resolver.resolve('requires/app').path, (FIXTURES / 'requires' / 'app.rb').resolve())

    def test_absolute_path(self):
        path = (FIXTURES / 'trellis_file.rb').resolve()
        resolved = PathResolver().resolve(str(path))
        self.assertEqual(resolved.path, path)
        self.assertFalse(resolved.stub)

    def test_missing_absolute_path(self):
        with self.assertRaises(ResolutionError):
            PathResolver([FIXTURES]).resolve(str((FIXTURES / 'missing.rb').resolve()))

    def test_first_root_wins(self):
        with tempfile.TemporaryDirectory() as first:
            Path(first, 'trellis_file.rb').write_text('puts "shadow"\n')
            resolver = PathResolver([first, FIXTURES])
            self.assertEqual(resolver.resolve('trellis_file').path, Path(first, 'trellis_file.rb').resolve())

    def test_stub_with_and_without_suffix(self):
        resolver = PathResolver([FIXTURES], stubs=['an_unparsable_lib'])
        for name in ('an_unparsable_lib', 'an_unparsable_lib.rb'):
            resolved = resolver.resolve(name)
            self.assertTrue(resolved.stub)
            self.assertIsNone(resolved.path)
        self.assertTrue(PathResolver(stubs=['lib.rb']).is_stub('lib'))

    def test_stub_does_not_touch_the_filesystem(self):
        resolver = PathResolver([FIXTURES], stubs=['an_unparsable_lib'])
        with mock.patch.object(Path, 'is_file', side_effect=AssertionError("filesystem access")):
            self.assertTrue(resolver.resolve('an_unparsable_lib').stub)

    def test_unresolved(self):
        with self.assertRaises(ResolutionError) as cm:
            PathResolver([FIXTURES]).resolve('nothing_here')
        self.assertEqual(str(cm.exception), "unresolved require: nothing_here")
        self.assertEqual(cm.exception.name, 'nothing_here')

    def test_results_are_cached(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp, 'cached.rb')
            source.write_text('puts 1\n')
            resolver = PathResolver([tmp])
            first = resolver.resolve('cached')
            source.unlink()
            self.assertIs(resolver.resolve('cached'), first)

    def test_paths_order(self):
        index = PackageIndex([PACKAGES])
        resolver = PathResolver(['a', 'b'], packages=['multi', 'mspec'], package_index=index)
        self.assertEqual(resolver.paths, [
            'a',
            'b',
            str((PACKAGES / 'multi' / 'lib').resolve()),
            str((PACKAGES / 'multi' / 'ext').resolve()),
            str((PACKAGES / 'mspec' / 'lib').resolve()),
        ])

    def test_package_libraries_are_searched(self):
        resolver = PathResolver(packages=['multi'], package_index=PackageIndex([PACKAGES]))
        self.assertEqual(resolver.resolve('multi_ext').path,
                         (PACKAGES / 'multi' / 'ext' / 'multi_ext.rb').resolve())

    def test_unknown_package_fails_at_construction(self):
        with self.assertRaises(ResolutionError) as cm:
            PathResolver(packages=['nope'], package_index=PackageIndex([PACKAGES]))
        self.assertEqual(str(cm.exception), "unknown package: nope")


class TestPackageIndex(unittest.TestCase):
    def test_default_require_paths(self):
        with tempfile.TemporaryDirectory() as tmp:
            package = Path(tmp, 'plain')
            package.mkdir()
            (package / 'package.json').write_text(json.dumps({"name": "plain"}))
            self.assertEqual(PackageIndex([tmp]).resolve('plain'), [(package / 'lib').resolve()])

    def test_malformed_manifests(self):
        index = PackageIndex([PACKAGES])
        with self.assertRaises(ResolutionError):
            index.find('broken')
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, 'garbled').mkdir()
            Path(tmp, 'garbled', 'package.json').write_text('{not json')
            with self.assertRaises(ResolutionError):
                PackageIndex([tmp]).find('garbled')

    def test_registered_packages_win(self):
        index = PackageIndex([])
        index.register(PackageSpec('local', Path('/opt/local'), ['src']))
        self.assertEqual(index.find('local').library_dirs, [Path('/opt/local/src')])

    def test_roots_from_environment(self):
        with mock.patch.dict(os.environ, {PACKAGE_PATH_ENV: os.pathsep.join([str(PACKAGES), '/elsewhere'])}):
            index = PackageIndex()
        self.assertEqual(index.roots[:2], [PACKAGES, Path('/elsewhere')])
        self.assertEqual(index.roots[-1], Path.home() / '.trellis' / 'packages')
        self.assertEqual(index.find('mspec').name, 'mspec')


if __name__ == '__main__':
    unittest.main()
