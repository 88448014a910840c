"""
Code Generator for Trellis.
Handles translation of AST to tape assembly, the textual form of the tape VM's instructions.
"""

from typing import List
from trellis.tape_vm import Opcode, Instruction
from trellis.trellis_ast import *
from trellis.errors import CompileError

INDENT = "  "

BINARY_OPCODES = {
    '+': Opcode.ADD,
    '-': Opcode.SUB,
    '*': Opcode.MUL,
    '/': Opcode.DIV,
    '%': Opcode.MOD,
    '==': Opcode.EQ,
    '!=': Opcode.NE,
    '<': Opcode.LT,
    '>': Opcode.GT,
    '<=': Opcode.LE,
    '>=': Opcode.GE,
}


class CodeGenerator:
    def __init__(self):
        self.output: List[str] = []
        self.requires: List[str] = []
        self.label_counter = 0
        self.depth = 0

    def generate(self, program: Program) -> str:
        """Generate one top-level BLOCK for ``program``"""
        self.output = []
        self.requires = []
        self.label_counter = 0
        self.depth = 0

        self.emit(Instruction(Opcode.BLOCK))
        self.depth += 1
        for stmt in program.statements:
            self.generate_statement(stmt)
        self.depth -= 1
        self.emit(Instruction(Opcode.END))
        return "\n".join(self.output)

    def emit(self, instruction: Instruction):
        self.output.append(INDENT * self.depth + repr(instruction))

    def new_label(self, prefix="label"):
        label = f"{prefix}_{self.label_counter}"
        self.label_counter += 1
        return label

    def generate_statement(self, node):
        if isinstance(node, Expression):
            self.generate_expression(node)
            self.emit(Instruction(Opcode.POP))
        elif isinstance(node, ReturnStatement):
            if node.expression:
                self.generate_expression(node.expression)
            else:
                self.emit(Instruction(Opcode.LOAD_CONST, None))
            self.emit(Instruction(Opcode.RETURN))
        elif isinstance(node, IfStatement):
            self.generate_if(node)
        elif isinstance(node, WhileStatement):
            self.generate_while(node)
        elif isinstance(node, FunctionDefinition):
            self.generate_function(node)
        else:
            raise CompileError(
                message=f"Unsupported statement {type(node).__name__}",
                error_type="CodegenError",
                location=node.location,
            )

    def generate_if(self, node: IfStatement):
        else_label = self.new_label("else")
        end_label = self.new_label("endif")
        self.generate_expression(node.condition)
        self.emit(Instruction(Opcode.JUMP_IF_FALSE, else_label))
        for stmt in node.then_body:
            self.generate_statement(stmt)
        self.emit(Instruction(Opcode.JUMP, end_label))
        self.emit(Instruction(Opcode.LABEL, else_label))
        for stmt in node.else_body or []:
            self.generate_statement(stmt)
        self.emit(Instruction(Opcode.LABEL, end_label))

    def generate_while(self, node: WhileStatement):
        start_label = self.new_label("while")
        end_label = self.new_label("endwhile")
        self.emit(Instruction(Opcode.LABEL, start_label))
        self.generate_expression(node.condition)
        self.emit(Instruction(Opcode.JUMP_IF_FALSE, end_label))
        for stmt in node.body:
            self.generate_statement(stmt)
        self.emit(Instruction(Opcode.JUMP, start_label))
        self.emit(Instruction(Opcode.LABEL, end_label))

    def generate_function(self, node: FunctionDefinition):
        self.emit(Instruction(Opcode.FUNC, node.name, *node.params))
        self.depth += 1
        # The value of the last expression is the implicit return value
        for i, stmt in enumerate(node.body):
            if i == len(node.body) - 1 and isinstance(stmt, Expression):
                self.generate_expression(stmt)
                self.emit(Instruction(Opcode.RETURN))
                break
            self.generate_statement(stmt)
        else:
            self.emit(Instruction(Opcode.LOAD_CONST, None))
            self.emit(Instruction(Opcode.RETURN))
        self.depth -= 1
        self.emit(Instruction(Opcode.END_FUNC))

    def generate_expression(self, node):
        if isinstance(node, NilLiteral):
            self.emit(Instruction(Opcode.LOAD_CONST, None))
        elif isinstance(node, Literal):
            self.emit(Instruction(Opcode.LOAD_CONST, node.value))
        elif isinstance(node, SelfReference):
            self.emit(Instruction(Opcode.LOAD_SELF))
        elif isinstance(node, LocalVariable):
            self.emit(Instruction(Opcode.LOAD_VAR, node.name))
        elif isinstance(node, Assignment):
            self.generate_expression(node.value)
            self.emit(Instruction(Opcode.DUP))
            self.emit(Instruction(Opcode.STORE_VAR, node.name))
        elif isinstance(node, ArrayLiteral):
            for element in node.elements:
                self.generate_expression(element)
            self.emit(Instruction(Opcode.CREATE_ARRAY, len(node.elements)))
        elif isinstance(node, BinaryOperation):
            self.generate_expression(node.left)
            self.generate_expression(node.right)
            self.emit(Instruction(BINARY_OPCODES[node.operator]))
        elif isinstance(node, LogicalOperation):
            self.generate_logical(node)
        elif isinstance(node, NotOperation):
            self.generate_expression(node.operand)
            self.emit(Instruction(Opcode.NOT))
        elif isinstance(node, Call):
            self.generate_call(node)
        else:
            raise CompileError(
                message=f"Unsupported expression {type(node).__name__}",
                error_type="CodegenError",
                location=node.location,
            )

    def generate_logical(self, node: LogicalOperation):
        end_label = self.new_label("and" if node.operator == '&&' else "or")
        self.generate_expression(node.left)
        self.emit(Instruction(Opcode.DUP))
        if node.operator == '||':
            self.emit(Instruction(Opcode.NOT))
        self.emit(Instruction(Opcode.JUMP_IF_FALSE, end_label))
        self.emit(Instruction(Opcode.POP))
        self.generate_expression(node.right)
        self.emit(Instruction(Opcode.LABEL, end_label))

    def generate_call(self, node: Call):
        if is_static_require(node):
            name = node.arguments[0].value
            self.requires.append(name)
            self.emit(Instruction(Opcode.REQUIRE, name))
            return

        if node.receiver is not None:
            self.generate_expression(node.receiver)
        for arg in node.arguments:
            self.generate_expression(arg)
        opcode = Opcode.CALL_SELF if node.receiver is None else Opcode.CALL_METHOD
        self.emit(Instruction(opcode, node.name, len(node.arguments)))


def is_static_require(node: Call) -> bool:
    """`require "name"` with a literal name is resolved at build time"""
    return (node.receiver is None and node.name == 'require'
            and len(node.arguments) == 1 and isinstance(node.arguments[0], StringLiteral))


def exit_call() -> str:
    return INDENT + repr(Instruction(Opcode.CALL_SELF, 'exit', 0))


def empty_block() -> str:
    return "\n".join([repr(Instruction(Opcode.BLOCK)), repr(Instruction(Opcode.END))])


def insert_before_close(block_text: str, line: str) -> str:
    """Insert ``line`` as the last statement of the top-level BLOCK in ``block_text``"""
    lines = block_text.split("\n")
    for idx in range(len(lines) - 1, -1, -1):
        if lines[idx] == Opcode.END.name:
            return "\n".join(lines[:idx] + [line] + lines[idx:])
    raise ValueError("fragment has no closing END")
