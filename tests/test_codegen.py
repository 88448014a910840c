import unittest

from trellis.codegen import empty_block, exit_call, insert_before_close
from trellis.compiler import Compiler


class TestCodeGenerator(unittest.TestCase):
    def setUp(self):
        self.compiler = Compiler()

    def compile(self, code):
        return self.compiler.compile_str(code)

    def test_command_call(self):
        result = self.compile("puts 4")
        self.assertEqual(result.text, "\n".join([
            "BLOCK",
            "  LOAD_CONST Int(4)",
            "  CALL_SELF puts, 1",
            "  POP",
            "END",
        ]))
        self.assertEqual(result.requires, ())

    def test_empty_source(self):
        self.assertEqual(self.compile("").text, "BLOCK\nEND")

    def test_typed_constants(self):
        text = self.compile('p 1.5, "hi", true, nil').text
        for constant in ("Float(1.5)", 'Str("hi")', "Bool(true)", "LOAD_CONST Nil"):
            self.assertIn(constant, text)

    def test_method_call(self):
        text = self.compile('"abc".upcase').text
        self.assertIn("CALL_METHOD upcase, 0", text)

    def test_static_requires_are_reported(self):
        result = self.compile('require "a"\nrequire "b"\nputs 1')
        self.assertEqual(result.requires, ("a", "b"))
        self.assertIn('REQUIRE "a"', result.text)

    def test_dynamic_require_is_a_call(self):
        result = self.compile('name = "a"\nrequire name')
        self.assertEqual(result.requires, ())
        self.assertIn("CALL_SELF require, 1", result.text)

    def test_function(self):
        text = self.compile("def twice(x)\n  x * 2\nend").text
        self.assertEqual(text.splitlines()[1:6], [
            "  FUNC twice, x",
            "    LOAD_VAR x",
            "    LOAD_CONST Int(2)",
            "    MUL",
            "    RETURN",
        ])
        self.assertIn("  END_FUNC", text)

    def test_labels_restart_per_unit(self):
        code = "if true\n  puts 1\nend"
        self.assertEqual(self.compile(code).text, self.compile(code).text)
        self.assertIn("LABEL else_0", self.compile(code).text)

    def test_no_line_ends_with_a_bare_literal(self):
        text = self.compile("puts 2342").text
        self.assertNotIn("2342\n", text + "\n")


class TestBlockHelpers(unittest.TestCase):
    def test_insert_before_close(self):
        block = "BLOCK\n  LOAD_CONST Nil\n  POP\nEND"
        self.assertEqual(insert_before_close(block, exit_call()),
                         "BLOCK\n  LOAD_CONST Nil\n  POP\n  CALL_SELF exit, 0\nEND")

    def test_insert_into_empty_block(self):
        self.assertEqual(insert_before_close(empty_block(), exit_call()),
                         "BLOCK\n  CALL_SELF exit, 0\nEND")

    def test_insert_without_end(self):
        with self.assertRaises(ValueError):
            insert_before_close("BLOCK", exit_call())


if __name__ == '__main__':
    unittest.main()
