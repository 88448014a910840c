"""
doit tasks for testing Trellis.
Run with: doit
"""

import os
from pathlib import Path

# Directories
OUTPUT_DIR = 'outputs'
FIXTURES_DIR = 'tests/fixtures'

# Python test files
PYTHON_TESTS = sorted(str(p) for p in Path('tests').glob('test_*.py'))

# Sources compiled by the smoke task
SMOKE_SOURCES = [
    os.path.join(FIXTURES_DIR, 'trellis_file.rb'),
]


def ensure_output_dir():
    """Create output directory if it doesn't exist"""
    os.makedirs(OUTPUT_DIR, exist_ok=True)


def task_compile_fixtures():
    """Compile the fixture programs to tape assembly"""
    ensure_output_dir()
    for source in SMOKE_SOURCES:
        target = os.path.join(OUTPUT_DIR, Path(source).stem + '.tape')
        yield {
            'name': Path(source).stem,
            'actions': [f'python -m trellis --compile --output {target} {source}'],
            'file_dep': [source],
            'targets': [target],
            'clean': True,
        }


def task_run_fixtures():
    """Run the fixture programs on the tape VM"""
    for source in SMOKE_SOURCES:
        yield {
            'name': Path(source).stem,
            'actions': [f'python -m trellis {source}'],
            'file_dep': [source],
            'verbosity': 2,
        }


def task_test_python():
    """Run Python tests"""
    def run_python_tests():
        import pytest
        return pytest.main(['-v'] + PYTHON_TESTS) == 0

    return {
        'actions': [run_python_tests],
        'file_dep': PYTHON_TESTS,
        'verbosity': 2,
    }


def task_test():
    """Run all tests"""
    return {
        'actions': None,
        'task_dep': ['test_python', 'run_fixtures'],
    }
