import unittest

from trellis.errors import CompileError
from trellis.lexer import Lexer
from trellis.parser import Parser
import trellis.trellis_ast as ast


class TestLexer(unittest.TestCase):
    def setUp(self):
        self.lexer = Lexer()

    def types(self, code):
        return [tok.type for tok in self.lexer.tokenize(code)]

    def test_keywords_and_identifiers(self):
        self.assertEqual(self.types("def empty? end"), ['DEF', 'IDENTIFIER', 'END'])

    def test_numbers(self):
        tokens = self.lexer.tokenize("12 1.5")
        self.assertEqual([(t.type, t.value) for t in tokens], [('INTEGER', 12), ('FLOAT', 1.5)])

    def test_string_escapes(self):
        tok, = self.lexer.tokenize(r'"a\tb\n\"c\""')
        self.assertEqual(tok.value, 'a\tb\n"c"')

    def test_semicolons_and_newlines_terminate(self):
        self.assertEqual(self.types("a;b\n\nc"),
                         ['IDENTIFIER', 'NEWLINE', 'IDENTIFIER', 'NEWLINE', 'IDENTIFIER'])

    def test_newlines_inside_parentheses_are_ignored(self):
        self.assertEqual(self.types("f(1,\n2)"),
                         ['IDENTIFIER', 'CALL_LPAREN', 'INTEGER', 'COMMA', 'INTEGER', 'RPAREN'])

    def test_call_paren_needs_no_space(self):
        self.assertEqual(self.types("f (1)")[1], 'LPAREN')
        self.assertEqual(self.types("f(1)")[1], 'CALL_LPAREN')

    def test_negative_argument(self):
        self.assertEqual(self.types("puts -1")[1], 'NEGATE')
        self.assertEqual(self.types("x - 1")[1], 'MINUS')
        self.assertEqual(self.types("x-1")[1], 'MINUS')

    def test_comments(self):
        self.assertEqual(self.types("a # note\nb"), ['IDENTIFIER', 'NEWLINE', 'IDENTIFIER'])

    def test_columns_are_one_based(self):
        tokens = self.lexer.tokenize("a\n  b")
        self.assertEqual((tokens[2].lineno, tokens[2].column), (2, 3))

    def test_illegal_character(self):
        with self.assertRaises(CompileError) as cm:
            self.lexer.tokenize("a @ b")
        self.assertEqual(cm.exception.error_type, "LexError")


class TestParser(unittest.TestCase):
    def setUp(self):
        self.parser = Parser()

    def parse(self, code):
        return self.parser.parse(code).statements

    def test_empty_program(self):
        self.assertEqual(self.parse(""), [])
        self.assertEqual(self.parse("\n\n# nothing\n"), [])

    def test_command_call(self):
        stmt, = self.parse('puts "a", 1')
        self.assertIsInstance(stmt, ast.Call)
        self.assertIsNone(stmt.receiver)
        self.assertEqual(stmt.name, 'puts')
        self.assertEqual([type(a) for a in stmt.arguments], [ast.StringLiteral, ast.IntegerLiteral])

    def test_paren_call_with_method_chain(self):
        stmt, = self.parse('foo(1).bar')
        self.assertEqual(stmt.name, 'bar')
        self.assertEqual(stmt.receiver.name, 'foo')
        self.assertEqual(stmt.receiver.arguments[0].value, 1)

    def test_local_variables(self):
        assign, use = self.parse("x = 2\nx + 1")
        self.assertIsInstance(assign, ast.Assignment)
        self.assertIsInstance(use.left, ast.LocalVariable)

    def test_unknown_identifier_is_a_call(self):
        stmt, = self.parse("x - 1")
        self.assertIsInstance(stmt, ast.BinaryOperation)
        self.assertIsInstance(stmt.left, ast.Call)

    def test_negative_literal_argument(self):
        stmt, = self.parse("puts -1")
        self.assertIsInstance(stmt, ast.Call)
        self.assertEqual(stmt.arguments[0].value, -1)

    def test_precedence(self):
        stmt, = self.parse("1 + 2 * 3 == 7 && !false")
        self.assertIsInstance(stmt, ast.LogicalOperation)
        self.assertEqual(stmt.left.operator, '==')
        self.assertEqual(stmt.left.left.right.operator, '*')
        self.assertIsInstance(stmt.right, ast.NotOperation)

    def test_if_elsif_else(self):
        stmt, = self.parse("if a\n  1\nelsif b then 2\nelse\n  3\nend")
        self.assertIsInstance(stmt, ast.IfStatement)
        nested, = stmt.else_body
        self.assertIsInstance(nested, ast.IfStatement)
        self.assertEqual(nested.else_body[0].value, 3)

    def test_while(self):
        _, loop = self.parse("i = 0\nwhile i < 3 do\n  i = i + 1\nend")
        self.assertIsInstance(loop, ast.WhileStatement)
        self.assertIsInstance(loop.body[0], ast.Assignment)

    def test_def_scopes_locals(self):
        func, call = self.parse("def add(a, b)\n  a + b\nend\nadd(1, 2)")
        self.assertIsInstance(func, ast.FunctionDefinition)
        self.assertEqual(func.params, ['a', 'b'])
        self.assertIsInstance(func.body[0].left, ast.LocalVariable)
        self.assertEqual(call.name, 'add')

    def test_params_do_not_leak(self):
        _, stmt = self.parse("def f(a)\n  a\nend\na")
        self.assertIsInstance(stmt, ast.Call)

    def test_array_literal(self):
        stmt, = self.parse("p [1, \"two\", nil]")
        array = stmt.arguments[0]
        self.assertIsInstance(array, ast.ArrayLiteral)
        self.assertEqual(len(array.elements), 3)

    def test_duplicate_params(self):
        with self.assertRaises(CompileError) as cm:
            self.parse("def f(a, a)\nend")
        self.assertIn("duplicated argument name", cm.exception.message)

    def test_syntax_error_location(self):
        with self.assertRaises(CompileError) as cm:
            self.parser.parse("puts 1\nputs )", file_path="bad.rb")
        error = cm.exception
        self.assertEqual(error.error_type, "ParseError")
        self.assertEqual((error.location.file, error.location.line), ("bad.rb", 2))

    def test_missing_end(self):
        with self.assertRaises(CompileError) as cm:
            self.parse("while true\n  puts 1\n")
        self.assertEqual(cm.exception.message, "unexpected end of input")


if __name__ == '__main__':
    unittest.main()
