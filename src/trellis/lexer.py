import ply.lex as lex
from trellis.errors import CompileError, SourceLocation, get_source_context
import logging

logger = logging.getLogger(__name__)

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    'e': '\x1b',
    '"': '"',
    '\\': '\\',
}


def unescape(body):
    """Decode the backslash escapes of a double-quoted string body"""
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == '\\':
            nxt = next(chars, '')
            out.append(ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return ''.join(out)


class Lexer:
    # A string containing ignored characters (spaces, tabs, carriage returns)
    t_ignore = ' \t\r'

    # Keywords
    reserved = {
        'def': 'DEF',
        'end': 'END',
        'if': 'IF',
        'elsif': 'ELSIF',
        'else': 'ELSE',
        'then': 'THEN',
        'while': 'WHILE',
        'do': 'DO',
        'return': 'RETURN',
        'true': 'TRUE',
        'false': 'FALSE',
        'nil': 'NIL',
        'self': 'SELF',
    }

    # List of token names
    tokens = [
        'IDENTIFIER', 'INTEGER', 'FLOAT', 'STRING', 'NEWLINE',
        'PLUS', 'MINUS', 'TIMES', 'DIVIDE', 'MOD',
        'EQUALS', 'EQEQ', 'NOTEQ', 'LESS', 'GREATER', 'LESSEQUAL', 'GREATEREQUAL',
        'AND', 'OR', 'NOT', 'NEGATE',
        'LPAREN', 'CALL_LPAREN', 'RPAREN', 'LBRACKET', 'RBRACKET', 'COMMA', 'DOT',
    ] + list(reserved.values())

    # Regular expression rules for simple tokens
    t_PLUS = r'\+'
    t_TIMES = r'\*'
    t_DIVIDE = r'/'
    t_MOD = r'%'
    t_EQUALS = r'='
    t_EQEQ = r'=='
    t_NOTEQ = r'!='
    t_LESSEQUAL = r'<='
    t_GREATEREQUAL = r'>='
    t_LESS = r'<'
    t_GREATER = r'>'
    t_AND = r'&&'
    t_OR = r'\|\|'
    t_NOT = r'!'
    t_COMMA = r','
    t_DOT = r'\.'

    # Tokens after which a new statement begins
    statement_leaders = (None, 'NEWLINE', 'THEN', 'ELSE', 'DO')

    # `puts -1` passes a negative argument, `x - 1` and `x-1` subtract
    def t_MINUS(self, t):
        r'-'
        data = t.lexer.lexdata
        spaced_before = t.lexpos > 0 and data[t.lexpos - 1] in ' \t'
        following = data[t.lexpos + 1:t.lexpos + 2]
        if (self.history[-1] == 'IDENTIFIER' and self.history[-2] in self.statement_leaders
                and spaced_before and following and not following.isspace()):
            t.type = 'NEGATE'
        return t

    # Newlines inside parentheses or brackets never terminate a statement
    def t_LPAREN(self, t):
        r'\('
        # `foo(1)` is a call, `foo (1)` passes a parenthesized argument
        data = t.lexer.lexdata
        if self.history[-1] == 'IDENTIFIER' and t.lexpos > 0 and not data[t.lexpos - 1].isspace():
            t.type = 'CALL_LPAREN'
        self.nesting += 1
        return t

    def t_RPAREN(self, t):
        r'\)'
        self.nesting = max(0, self.nesting - 1)
        return t

    def t_LBRACKET(self, t):
        r'\['
        self.nesting += 1
        return t

    def t_RBRACKET(self, t):
        r'\]'
        self.nesting = max(0, self.nesting - 1)
        return t

    def t_IDENTIFIER(self, t):
        r'[a-zA-Z_][a-zA-Z_0-9]*(?:[?!](?!=))?'
        # Check for reserved words
        t.type = self.reserved.get(t.value, 'IDENTIFIER')
        return t

    def t_FLOAT(self, t):
        r'\d+\.\d+'
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t):
        r'\d+'
        t.value = int(t.value)
        return t

    def t_STRING(self, t):
        r'"(?:\\.|[^"\\])*"'
        t.lexer.lineno += t.value.count('\n')
        t.value = unescape(t.value[1:-1])
        return t

    # Comments
    def t_COMMENT(self, t):
        r'\#[^\n]*'
        pass

    # ';' and newlines both terminate a statement
    def t_NEWLINE(self, t):
        r'(?:\n|;)+'
        t.lexer.lineno += t.value.count('\n')
        if self.nesting:
            return None
        return t

    def t_error(self, t):
        raise CompileError(
            message=f"Illegal character {t.value[0]!r}",
            error_type="LexError",
            location=self.location(t),
            context=get_source_context(t.lexer.lexdata, t.lineno),
        )

    # Build the lexer
    def __init__(self, source_file="<unknown>"):
        self.source_file = source_file
        self.history = [None, None]
        self.nesting = 0
        self.lexer = lex.lex(module=self)

    def input(self, data):
        self.nesting = 0
        self.history = [None, None]
        self.lexer.lineno = 1
        self.lexer.input(data)

    def token(self):
        tok = self.lexer.token()
        if tok:
            tok.column = self.column(tok)
            self.history = [self.history[-1], tok.type]
        return tok

    def column(self, tok):
        line_start = self.lexer.lexdata.rfind('\n', 0, tok.lexpos) + 1
        return tok.lexpos - line_start + 1  # Make columns 1-based

    def location(self, tok):
        return SourceLocation(self.source_file, tok.lineno, self.column(tok))

    def tokenize(self, data):
        """Return every token of ``data`` as a list"""
        self.input(data)
        result = []
        while True:
            tok = self.token()
            if not tok:
                break
            result.append(tok)
        logger.debug("Lexed %d tokens from %s", len(result), self.source_file)
        return result
