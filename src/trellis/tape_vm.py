# tape_vm.py

from enum import Enum, auto
import json
import logging
import re

from trellis.errors import ExecutionFault

logger = logging.getLogger(__name__)


class Opcode(Enum):
    # Structure
    BLOCK = auto()
    END = auto()
    FUNC = auto()
    END_FUNC = auto()
    # Basic opcodes
    LOAD_CONST = auto()
    LOAD_VAR = auto()
    STORE_VAR = auto()
    LOAD_SELF = auto()
    CREATE_ARRAY = auto()
    # Arithmetic and comparison
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    MOD = auto()
    EQ = auto()
    NE = auto()
    LT = auto()
    GT = auto()
    LE = auto()
    GE = auto()
    NOT = auto()
    # Calls
    CALL_SELF = auto()
    CALL_METHOD = auto()
    RETURN = auto()
    REQUIRE = auto()
    # Control flow
    JUMP_IF_FALSE = auto()
    JUMP = auto()
    LABEL = auto()
    DUP = auto()
    POP = auto()


CONSTANT_PATTERN = re.compile(r'^(Int|Float|Str|Bool)\((.*)\)$', re.DOTALL)


def format_constant(value):
    """Render a constant operand with its type tag, e.g. ``Int(4)``"""
    if value is None:
        return "Nil"
    if isinstance(value, bool):
        return f"Bool({'true' if value else 'false'})"
    if isinstance(value, int):
        return f"Int({value})"
    if isinstance(value, float):
        return f"Float({value!r})"
    if isinstance(value, str):
        return f"Str({json.dumps(value, ensure_ascii=False)})"
    raise TypeError(f"Cannot encode constant {value!r}")


def parse_constant(text):
    if text == "Nil":
        return None
    match = CONSTANT_PATTERN.match(text)
    if not match:
        raise TapeFormatError(f"bad constant {text!r}")
    kind, body = match.groups()
    try:
        if kind == "Int":
            return int(body)
        if kind == "Float":
            return float(body)
        if kind == "Str":
            return json.loads(body)
    except ValueError as e:
        raise TapeFormatError(f"bad constant {text!r}") from e
    if body not in ("true", "false"):
        raise TapeFormatError(f"bad constant {text!r}")
    return body == "true"


class Instruction:
    def __init__(self, opcode, *operands):
        self.opcode = opcode
        self.operands = operands

    def __repr__(self):
        if self.opcode == Opcode.LOAD_CONST:
            return f"LOAD_CONST {format_constant(self.operands[0])}"
        if self.opcode == Opcode.REQUIRE:
            return f"REQUIRE {json.dumps(self.operands[0])}"
        return f"{self.opcode.name} {', '.join(map(str, self.operands))}".rstrip()


class TapeFormatError(Exception):
    pass


def parse_instruction(line):
    """Parse one line of tape assembly into an Instruction"""
    name, _, rest = line.partition(' ')
    try:
        opcode = Opcode[name]
    except KeyError:
        raise TapeFormatError(f"unknown opcode {name!r}") from None

    if opcode == Opcode.LOAD_CONST:
        return Instruction(opcode, parse_constant(rest))
    if opcode == Opcode.REQUIRE:
        try:
            return Instruction(opcode, json.loads(rest))
        except ValueError as e:
            raise TapeFormatError(f"bad require operand {rest!r}") from e

    operands = rest.split(', ') if rest else []
    try:
        if opcode in (Opcode.CALL_SELF, Opcode.CALL_METHOD):
            return Instruction(opcode, operands[0], int(operands[1]))
        if opcode == Opcode.CREATE_ARRAY:
            return Instruction(opcode, int(operands[0]))
    except (IndexError, ValueError) as e:
        raise TapeFormatError(f"bad operands for {name}: {rest!r}") from e
    return Instruction(opcode, *operands)


class CodeBlock:
    """A straight run of instructions with its own label table"""
    def __init__(self, name, instructions):
        self.name = name
        self.instructions = instructions
        self.labels = {}
        self.preprocess_labels()

    def preprocess_labels(self):
        for idx, instr in enumerate(self.instructions):
            if instr.opcode == Opcode.LABEL:
                label_name = instr.operands[0]
                self.labels[label_name] = idx


class Function:
    def __init__(self, name, params, body):
        self.name = name
        self.params = list(params)
        self.body = body


def load(text):
    """Load tape assembly text into its top-level code blocks"""
    lines = ((num, line.strip()) for num, line in enumerate(text.splitlines(), 1))
    lines = ((num, line) for num, line in lines if line and not line.startswith(';'))

    blocks = []
    for num, line in lines:
        if line != Opcode.BLOCK.name:
            raise TapeFormatError(f"line {num}: expected BLOCK, got {line!r}")
        blocks.append(_read_block(lines, f"block_{len(blocks)}", Opcode.END))
    return blocks


def _read_block(lines, name, terminator):
    instructions = []
    for num, line in lines:
        if line == terminator.name:
            return CodeBlock(name, instructions)
        try:
            instr = parse_instruction(line)
        except TapeFormatError as e:
            raise TapeFormatError(f"line {num}: {e}") from None
        if instr.opcode in (Opcode.BLOCK, Opcode.END, Opcode.END_FUNC):
            raise TapeFormatError(f"line {num}: unexpected {line} in {name}")
        if instr.opcode == Opcode.FUNC:
            if not instr.operands:
                raise TapeFormatError(f"line {num}: FUNC without a name")
            fname, params = instr.operands[0], instr.operands[1:]
            body = _read_block(lines, fname, Opcode.END_FUNC)
            instr = Instruction(Opcode.FUNC, Function(fname, params, body))
        instructions.append(instr)
    raise TapeFormatError(f"unterminated {name}: missing {terminator.name}")


class VMError(Exception):
    """Uncaught error raised by the running program"""


class ProgramExit(Exception):
    def __init__(self, status):
        super().__init__(status)
        self.status = status


class MainObject:
    def __repr__(self):
        return "main"


class Frame:
    def __init__(self, scope_name, local_vars=None):
        self.scope_name = scope_name
        self.local_vars = dict(local_vars or {})
        self.stack = []


def truthy(value):
    return value is not None and value is not False


def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_s(value):
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return inspect(value)
    return str(value)


def inspect(value):
    if value is None:
        return "nil"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ", ".join(inspect(v) for v in value) + "]"
    return to_s(value)


def same_value(left, right):
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right
    return left == right


def to_i(value):
    if is_number(value):
        return int(value)
    match = re.match(r'\s*[-+]?\d+', value)
    return int(match.group()) if match else 0


# name -> (accepted receiver types, implementation)
VALUE_METHODS = {
    'to_s': (None, to_s),
    'inspect': (None, inspect),
    'nil?': (None, lambda v: v is None),
    'to_i': ((int, float, str), to_i),
    'length': ((str, list), len),
    'size': ((str, list), len),
    'upcase': ((str,), str.upper),
    'downcase': ((str,), str.lower),
    'reverse': ((str, list), lambda v: v[::-1]),
    '-@': ((int, float), lambda v: -v),
}


class TapeVM:
    """ An Instruction TapeVM with a Stack"""
    def __init__(self, stdout):
        self.stdout = stdout
        self.functions = {}
        self.required = []
        self.main = MainObject()
        self.kernel = {
            'puts': self.kernel_puts,
            'print': self.kernel_print,
            'p': self.kernel_p,
            'exit': self.kernel_exit,
            'raise': self.kernel_raise,
            'require': self.kernel_require,
        }

    def run(self, blocks):
        for block in blocks:
            logger.debug("Running %s", block.name)
            self.run_block(block, Frame(block.name))

    def run_block(self, block, frame):
        instructions = block.instructions
        stack = frame.stack
        pc = 0
        while pc < len(instructions):
            instr = instructions[pc]
            opcode = instr.opcode

            if opcode == Opcode.LOAD_CONST:
                stack.append(instr.operands[0])
            elif opcode == Opcode.LOAD_VAR:
                name = instr.operands[0]
                if name not in frame.local_vars:
                    raise VMError(f"undefined local variable '{name}'")
                stack.append(frame.local_vars[name])
            elif opcode == Opcode.STORE_VAR:
                frame.local_vars[instr.operands[0]] = stack.pop()
            elif opcode == Opcode.LOAD_SELF:
                stack.append(self.main)
            elif opcode == Opcode.CREATE_ARRAY:
                size = instr.operands[0]
                elements = stack[len(stack) - size:]
                del stack[len(stack) - size:]
                stack.append(elements)
            elif opcode in BINARY_OPCODES:
                right = stack.pop()
                left = stack.pop()
                stack.append(self.binary(opcode, left, right))
            elif opcode == Opcode.NOT:
                stack.append(not truthy(stack.pop()))
            elif opcode in (Opcode.CALL_SELF, Opcode.CALL_METHOD):
                name, argc = instr.operands
                args = stack[len(stack) - argc:] if argc else []
                del stack[len(stack) - argc:]
                receiver = self.main if opcode == Opcode.CALL_SELF else stack.pop()
                stack.append(self.call_method(receiver, name, args))
            elif opcode == Opcode.FUNC:
                func = instr.operands[0]
                self.functions[func.name] = func
            elif opcode == Opcode.RETURN:
                return stack.pop() if stack else None
            elif opcode == Opcode.REQUIRE:
                # Required sources were bundled ahead of this block at build time
                self.required.append(instr.operands[0])
                stack.append(True)
            elif opcode == Opcode.JUMP:
                pc = self.jump(block, instr.operands[0])
                continue
            elif opcode == Opcode.JUMP_IF_FALSE:
                if not truthy(stack.pop()):
                    pc = self.jump(block, instr.operands[0])
                    continue
            elif opcode == Opcode.LABEL:
                pass
            elif opcode == Opcode.DUP:
                stack.append(stack[-1])
            elif opcode == Opcode.POP:
                stack.pop()
            else:
                raise VMError(f"Unknown opcode {opcode}")
            pc += 1
        return None

    def jump(self, block, label):
        if label not in block.labels:
            raise VMError(f"Unknown label: {label}")
        return block.labels[label]

    def binary(self, opcode, left, right):
        if opcode == Opcode.EQ:
            return same_value(left, right)
        if opcode == Opcode.NE:
            return not same_value(left, right)
        if opcode in COMPARISONS:
            if (is_number(left) and is_number(right)) or (isinstance(left, str) and isinstance(right, str)):
                return COMPARISONS[opcode](left, right)
            raise VMError(f"comparison of {inspect(left)} with {inspect(right)} failed")

        if is_number(left) and is_number(right):
            if opcode in (Opcode.DIV, Opcode.MOD) and right == 0:
                raise VMError("divided by 0")
            if opcode == Opcode.DIV:
                if isinstance(left, int) and isinstance(right, int):
                    return left // right
                return left / right
            return ARITHMETIC[opcode](left, right)
        if opcode == Opcode.ADD and type(left) is type(right) and isinstance(left, (str, list)):
            return left + right
        if opcode == Opcode.MUL and isinstance(left, (str, list)) and isinstance(right, int) \
                and not isinstance(right, bool):
            return left * right
        raise VMError(f"undefined operation {opcode.name} for {inspect(left)} and {inspect(right)}")

    def call_method(self, receiver, name, args):
        if receiver is self.main:
            if name in self.functions:
                return self.invoke(self.functions[name], args)
            if name in self.kernel:
                try:
                    return self.kernel[name](*args)
                except TypeError:
                    raise VMError(f"wrong number of arguments for '{name}' (given {len(args)})") from None
        if name in VALUE_METHODS:
            accepted, method = VALUE_METHODS[name]
            if accepted is None or (isinstance(receiver, accepted) and not isinstance(receiver, bool)):
                if args:
                    raise VMError(f"wrong number of arguments for '{name}' (given {len(args)}, expected 0)")
                return method(receiver)
        raise VMError(f"undefined method '{name}' for {inspect(receiver)}")

    def invoke(self, func, args):
        if len(args) != len(func.params):
            raise VMError(
                f"wrong number of arguments for '{func.name}' (given {len(args)}, expected {len(func.params)})"
            )
        frame = Frame(func.name, zip(func.params, args))
        return self.run_block(func.body, frame)

    def kernel_puts(self, *args):
        if not args:
            self.stdout.write("\n")
        for arg in args:
            if isinstance(arg, list):
                if arg:
                    self.kernel_puts(*arg)
                else:
                    self.stdout.write("\n")
                continue
            text = to_s(arg)
            self.stdout.write(text if text.endswith("\n") else text + "\n")
        return None

    def kernel_print(self, *args):
        for arg in args:
            self.stdout.write(to_s(arg))
        return None

    def kernel_p(self, *args):
        for arg in args:
            self.stdout.write(inspect(arg) + "\n")
        if not args:
            return None
        return args[0] if len(args) == 1 else list(args)

    def kernel_exit(self, status=True):
        if status is True:
            status = 0
        elif status is False:
            status = 1
        elif not isinstance(status, int):
            raise VMError(f"no implicit conversion of {inspect(status)} into Integer")
        raise ProgramExit(status)

    def kernel_raise(self, message="unhandled exception"):
        raise VMError(to_s(message))

    def kernel_require(self, name):
        raise VMError(f"cannot load such file -- {to_s(name)} (only literal requires are bundled)")


ARITHMETIC = {
    Opcode.ADD: lambda a, b: a + b,
    Opcode.SUB: lambda a, b: a - b,
    Opcode.MUL: lambda a, b: a * b,
    Opcode.MOD: lambda a, b: a % b,
}

COMPARISONS = {
    Opcode.LT: lambda a, b: a < b,
    Opcode.GT: lambda a, b: a > b,
    Opcode.LE: lambda a, b: a <= b,
    Opcode.GE: lambda a, b: a >= b,
}

BINARY_OPCODES = frozenset(ARITHMETIC) | frozenset(COMPARISONS) | {Opcode.DIV, Opcode.EQ, Opcode.NE}


class Runtime:
    """Executes tape assembly, writing program output to ``stdout``"""
    def __init__(self, stdout):
        self.stdout = stdout

    def execute(self, text):
        """Run ``text`` to completion and return the program's exit status"""
        try:
            blocks = load(text)
        except TapeFormatError as e:
            raise ExecutionFault(f"malformed tape assembly: {e}") from e

        vm = TapeVM(self.stdout)
        try:
            vm.run(blocks)
        except ProgramExit as e:
            logger.debug("Program exited with status %s", e.status)
            return e.status
        except VMError as e:
            raise ExecutionFault(str(e)) from e
        except RecursionError as e:
            raise ExecutionFault("stack level too deep") from e
        except (IndexError, TypeError) as e:
            raise ExecutionFault(f"corrupt program state: {e}") from e
        return 0
