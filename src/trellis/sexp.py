"""S-expression rendering of parsed Trellis source.

Each top-level statement renders to one line, e.g. ``puts 4`` becomes
``(:call, nil, :puts, (:arglist, (:int, 4)))``.
"""

import json
from typing import List

from trellis.compiler import Compiler
from trellis.trellis_ast import *


def sexp(*parts) -> str:
    return "(" + ", ".join(parts) + ")"


def symbol(name: str) -> str:
    return f":{name}"


class TreePrinter:
    def __init__(self, compiler: Compiler = None):
        self.compiler = compiler or Compiler()

    def parse(self, source: str, file_path: str = "<string>") -> List[str]:
        """Parse ``source`` and return one trace line per top-level statement"""
        program = self.compiler.parse(source, file_path)
        return [self.render(stmt) for stmt in program.statements]

    def render_body(self, statements) -> str:
        if not statements:
            return "nil"
        if len(statements) == 1:
            return self.render(statements[0])
        return sexp(":block", *(self.render(s) for s in statements))

    def render(self, node) -> str:
        if isinstance(node, NilLiteral):
            return "(:nil)"
        if isinstance(node, BooleanLiteral):
            return "(:true)" if node.value else "(:false)"
        if isinstance(node, IntegerLiteral):
            return sexp(":int", str(node.value))
        if isinstance(node, FloatLiteral):
            return sexp(":float", repr(node.value))
        if isinstance(node, StringLiteral):
            return sexp(":str", json.dumps(node.value, ensure_ascii=False))
        if isinstance(node, SelfReference):
            return "(:self)"
        if isinstance(node, ArrayLiteral):
            return sexp(":array", *(self.render(e) for e in node.elements))
        if isinstance(node, LocalVariable):
            return sexp(":lvar", symbol(node.name))
        if isinstance(node, Assignment):
            return sexp(":lasgn", symbol(node.name), self.render(node.value))
        if isinstance(node, Call):
            receiver = self.render(node.receiver) if node.receiver else "nil"
            arglist = sexp(":arglist", *(self.render(a) for a in node.arguments))
            return sexp(":call", receiver, symbol(node.name), arglist)
        if isinstance(node, BinaryOperation):
            return sexp(":call", self.render(node.left), symbol(node.operator),
                        sexp(":arglist", self.render(node.right)))
        if isinstance(node, LogicalOperation):
            kind = ":and" if node.operator == '&&' else ":or"
            return sexp(kind, self.render(node.left), self.render(node.right))
        if isinstance(node, NotOperation):
            return sexp(":not", self.render(node.operand))
        if isinstance(node, ReturnStatement):
            if node.expression is None:
                return "(:return)"
            return sexp(":return", self.render(node.expression))
        if isinstance(node, IfStatement):
            else_part = "nil" if node.else_body is None else self.render_body(node.else_body)
            return sexp(":if", self.render(node.condition), self.render_body(node.then_body), else_part)
        if isinstance(node, WhileStatement):
            return sexp(":while", self.render(node.condition), self.render_body(node.body))
        if isinstance(node, FunctionDefinition):
            args = sexp(":args", *(symbol(p) for p in node.params))
            body = sexp(":block", *(self.render(s) for s in node.body))
            return sexp(":def", "nil", symbol(node.name), args, body)
        raise TypeError(f"Cannot render {type(node).__name__}")
