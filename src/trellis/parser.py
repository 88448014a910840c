import ply.yacc as yacc
from trellis.lexer import Lexer
import trellis.trellis_ast as ast
from trellis.errors import CompileError, SourceLocation, get_source_context
import logging

logger = logging.getLogger(__name__)

BINARY_OPERATORS = {
    'PLUS': '+',
    'MINUS': '-',
    'TIMES': '*',
    'DIVIDE': '/',
    'MOD': '%',
    'EQEQ': '==',
    'NOTEQ': '!=',
    'LESS': '<',
    'GREATER': '>',
    'LESSEQUAL': '<=',
    'GREATEREQUAL': '>=',
}


class Parser:
    start = 'program'

    tokens = Lexer.tokens

    precedence = (
        ('left', 'OR'),
        ('left', 'AND'),
        ('nonassoc', 'EQEQ', 'NOTEQ'),
        ('nonassoc', 'LESS', 'GREATER', 'LESSEQUAL', 'GREATEREQUAL'),
        ('left', 'PLUS', 'MINUS'),
        ('left', 'TIMES', 'DIVIDE', 'MOD'),
        ('right', 'NOT', 'UMINUS'),
        # A bare identifier followed by ' - ' is a subtraction, not a command call
        ('nonassoc', 'VCALL'),
    )

    def __init__(self):
        self.lexer = Lexer()
        self.parser = yacc.yacc(module=self, debug=False, write_tables=False,
                                errorlog=yacc.NullLogger())
        self.file_path = "<unknown>"
        self.source = ""
        self.scopes = [set()]

    def parse(self, source: str, file_path: str = "<unknown>") -> ast.Program:
        """Parse source code into an AST"""
        self.file_path = file_path
        self.source = source
        self.scopes = [set()]
        self.lexer.source_file = file_path
        logger.debug("Parsing %s", file_path)
        return self.parser.parse(source, lexer=self.lexer)

    # Local variable scopes. `def` opens a fresh one, like Ruby.
    def _declare(self, name):
        self.scopes[-1].add(name)

    def _is_local(self, name):
        return name in self.scopes[-1]

    def _locate(self, node, p, index=1):
        node.location = SourceLocation(self.file_path, p.lineno(index), 0)
        return node

    def p_program(self, p):
        '''program : opt_terms
                   | opt_terms stmts opt_terms'''
        p[0] = ast.Program(p[2] if len(p) == 4 else [])

    def p_stmts(self, p):
        '''stmts : stmt
                 | stmts terms stmt'''
        if len(p) == 2:
            p[0] = [p[1]]
        else:
            p[0] = p[1] + [p[3]]

    def p_body(self, p):
        '''body : stmts opt_terms
                | empty'''
        p[0] = p[1] if p[1] else []

    def p_terms(self, p):
        '''terms : NEWLINE
                 | terms NEWLINE'''
        p[0] = None

    def p_opt_terms(self, p):
        '''opt_terms : terms
                     | empty'''
        p[0] = None

    def p_empty(self, p):
        'empty :'
        p[0] = None

    def p_stmt(self, p):
        '''stmt : expr
                | command
                | if_stmt
                | while_stmt
                | def_stmt'''
        p[0] = p[1]

    def p_stmt_assignment(self, p):
        '''stmt : IDENTIFIER EQUALS expr'''
        p[0] = self._locate(ast.Assignment(p[1], p[3]), p)
        self._declare(p[1])

    def p_stmt_return(self, p):
        '''stmt : RETURN
                | RETURN expr'''
        p[0] = self._locate(ast.ReturnStatement(p[2] if len(p) == 3 else None), p)

    def p_command(self, p):
        '''command : IDENTIFIER arg_list'''
        p[0] = self._locate(ast.Call(None, p[1], p[2]), p)

    def p_then(self, p):
        '''then : terms
                | THEN opt_terms
                | terms THEN opt_terms'''
        p[0] = None

    def p_do(self, p):
        '''do : terms
              | DO opt_terms'''
        p[0] = None

    def p_if_stmt(self, p):
        '''if_stmt : IF expr then body if_tail END'''
        p[0] = self._locate(ast.IfStatement(p[2], p[4], p[5]), p)

    def p_if_tail(self, p):
        '''if_tail : empty
                   | ELSE opt_terms body
                   | ELSIF expr then body if_tail'''
        if len(p) == 2:
            p[0] = None
        elif len(p) == 4:
            p[0] = p[3]
        else:
            p[0] = [self._locate(ast.IfStatement(p[2], p[4], p[5]), p)]

    def p_while_stmt(self, p):
        '''while_stmt : WHILE expr do body END'''
        p[0] = self._locate(ast.WhileStatement(p[2], p[4]), p)

    def p_def_stmt(self, p):
        '''def_stmt : def_head terms body END'''
        name, params, line = p[1]
        node = ast.FunctionDefinition(name, params, p[3])
        node.location = SourceLocation(self.file_path, line, 0)
        p[0] = node
        self.scopes.pop()

    def p_def_head(self, p):
        '''def_head : DEF IDENTIFIER
                    | DEF IDENTIFIER CALL_LPAREN param_list RPAREN'''
        params = p[4] if len(p) == 6 else []
        if len(set(params)) != len(params):
            self._fail("duplicated argument name", p.lineno(2), p.lexpos(2))
        self.scopes.append(set(params))
        p[0] = (p[2], params, p.lineno(1))

    def p_param_list(self, p):
        '''param_list : empty
                      | params'''
        p[0] = p[1] or []

    def p_params(self, p):
        '''params : IDENTIFIER
                  | params COMMA IDENTIFIER'''
        if len(p) == 2:
            p[0] = [p[1]]
        else:
            p[0] = p[1] + [p[3]]

    def p_expr_binary(self, p):
        '''expr : expr PLUS expr
                | expr MINUS expr
                | expr TIMES expr
                | expr DIVIDE expr
                | expr MOD expr
                | expr EQEQ expr
                | expr NOTEQ expr
                | expr LESS expr
                | expr GREATER expr
                | expr LESSEQUAL expr
                | expr GREATEREQUAL expr'''
        operator = BINARY_OPERATORS[p.slice[2].type]
        p[0] = self._locate(ast.BinaryOperation(p[1], operator, p[3]), p, 2)

    def p_expr_logical(self, p):
        '''expr : expr AND expr
                | expr OR expr'''
        p[0] = self._locate(ast.LogicalOperation(p[1], p[2], p[3]), p, 2)

    def p_expr_not(self, p):
        '''expr : NOT expr'''
        p[0] = self._locate(ast.NotOperation(p[2]), p)

    def p_expr_negate(self, p):
        '''expr : MINUS expr %prec UMINUS
                | NEGATE expr %prec UMINUS'''
        operand = p[2]
        if isinstance(operand, (ast.IntegerLiteral, ast.FloatLiteral)):
            operand.value = -operand.value
            p[0] = operand
        else:
            p[0] = self._locate(ast.Call(operand, '-@'), p)

    def p_expr_primary(self, p):
        '''expr : primary'''
        p[0] = p[1]

    def p_primary_integer(self, p):
        '''primary : INTEGER'''
        p[0] = self._locate(ast.IntegerLiteral(p[1]), p)

    def p_primary_float(self, p):
        '''primary : FLOAT'''
        p[0] = self._locate(ast.FloatLiteral(p[1]), p)

    def p_primary_string(self, p):
        '''primary : STRING'''
        p[0] = self._locate(ast.StringLiteral(p[1]), p)

    def p_primary_keyword(self, p):
        '''primary : TRUE
                   | FALSE
                   | NIL
                   | SELF'''
        kind = p.slice[1].type
        if kind == 'NIL':
            node = ast.NilLiteral()
        elif kind == 'SELF':
            node = ast.SelfReference()
        else:
            node = ast.BooleanLiteral(kind == 'TRUE')
        p[0] = self._locate(node, p)

    def p_primary_identifier(self, p):
        '''primary : IDENTIFIER %prec VCALL'''
        if self._is_local(p[1]):
            node = ast.LocalVariable(p[1])
        else:
            node = ast.Call(None, p[1])
        p[0] = self._locate(node, p)

    def p_primary_call(self, p):
        '''primary : IDENTIFIER CALL_LPAREN call_args RPAREN'''
        p[0] = self._locate(ast.Call(None, p[1], p[3]), p)

    def p_primary_method_call(self, p):
        '''primary : primary DOT IDENTIFIER
                   | primary DOT IDENTIFIER CALL_LPAREN call_args RPAREN'''
        arguments = p[5] if len(p) == 7 else []
        p[0] = self._locate(ast.Call(p[1], p[3], arguments), p, 3)

    def p_primary_group(self, p):
        '''primary : LPAREN expr RPAREN'''
        p[0] = p[2]

    def p_primary_array(self, p):
        '''primary : LBRACKET call_args RBRACKET'''
        p[0] = self._locate(ast.ArrayLiteral(p[2]), p)

    def p_call_args(self, p):
        '''call_args : empty
                     | arg_list'''
        p[0] = p[1] or []

    def p_arg_list(self, p):
        '''arg_list : expr
                    | arg_list COMMA expr'''
        if len(p) == 2:
            p[0] = [p[1]]
        else:
            p[0] = p[1] + [p[3]]

    def p_error(self, p):
        if p is None:
            line = self.source.count('\n') + 1
            raise CompileError(
                message="unexpected end of input",
                error_type="ParseError",
                location=SourceLocation(self.file_path, line, 0),
                context=get_source_context(self.source, line),
                notes=["A block is probably missing its 'end'"],
            )
        value = "newline" if p.type == 'NEWLINE' else repr(p.value)
        self._fail(f"unexpected {value}", p.lineno, p.lexpos)

    def _fail(self, message, line, lexpos):
        column = lexpos - self.source.rfind('\n', 0, lexpos)
        raise CompileError(
            message=message,
            error_type="ParseError",
            location=SourceLocation(self.file_path, line, column),
            context=get_source_context(self.source, line),
            notes=["Check syntax near this location"],
        )
