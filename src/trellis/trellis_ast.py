class Node:
    def __init__(self):
        self.parent = None
        self.location = None  # For source locations

    def add_child(self, child):
        """Add a child node and set its parent"""
        if hasattr(child, 'parent'):
            child.parent = self
        return child


class Program(Node):
    def __init__(self, statements):
        super().__init__()
        self.statements = [self.add_child(stmt) for stmt in (statements or [])]

    def __repr__(self):
        return f"Program({self.statements})"


class Statement(Node):
    def __init__(self):
        super().__init__()


class Expression(Node):
    def __init__(self):
        super().__init__()


class Literal(Expression):
    def __init__(self, value):
        super().__init__()
        self.value = value

    def __repr__(self):
        return f"{type(self).__name__}({self.value!r})"


class IntegerLiteral(Literal):
    pass


class FloatLiteral(Literal):
    pass


class StringLiteral(Literal):
    pass


class BooleanLiteral(Literal):
    pass


class NilLiteral(Literal):
    def __init__(self):
        super().__init__(None)


class SelfReference(Expression):
    def __repr__(self):
        return "Self"


class ArrayLiteral(Expression):
    def __init__(self, elements):
        super().__init__()
        self.elements = [self.add_child(e) for e in elements]


class LocalVariable(Expression):
    def __init__(self, name):
        super().__init__()
        self.name = name

    def __repr__(self):
        return f"LocalVariable({self.name})"


class Assignment(Expression):
    """Assignment to a local variable; evaluates to the assigned value"""
    def __init__(self, name, value):
        super().__init__()
        self.name = name
        self.value = self.add_child(value)


class Call(Expression):
    """Method call. ``receiver`` is None for calls on the implicit self."""
    def __init__(self, receiver, name, arguments=None):
        super().__init__()
        self.receiver = self.add_child(receiver) if receiver else None
        self.name = name
        self.arguments = [self.add_child(arg) for arg in (arguments or [])]

    def __repr__(self):
        return f"Call({self.receiver}, {self.name}, {self.arguments})"


class BinaryOperation(Expression):
    def __init__(self, left, operator, right):
        super().__init__()
        self.left = self.add_child(left)
        self.operator = operator
        self.right = self.add_child(right)

    def __repr__(self):
        return f"BinaryOperation({self.left} {self.operator} {self.right})"


class LogicalOperation(Expression):
    """Short-circuiting ``&&`` / ``||``"""
    def __init__(self, left, operator, right):
        super().__init__()
        self.left = self.add_child(left)
        self.operator = operator
        self.right = self.add_child(right)


class NotOperation(Expression):
    def __init__(self, operand):
        super().__init__()
        self.operand = self.add_child(operand)


class ReturnStatement(Statement):
    def __init__(self, expression):
        super().__init__()
        self.expression = self.add_child(expression) if expression else None

    def __repr__(self):
        return f"Return({self.expression})"


class IfStatement(Statement):
    def __init__(self, condition, then_body, else_body):
        super().__init__()
        self.condition = self.add_child(condition)
        self.then_body = [self.add_child(stmt) for stmt in then_body]
        self.else_body = [self.add_child(stmt) for stmt in else_body] if else_body is not None else None


class WhileStatement(Statement):
    """While loop control structure"""
    def __init__(self, condition, body):
        super().__init__()
        self.condition = self.add_child(condition)
        self.body = [self.add_child(stmt) for stmt in body]


class FunctionDefinition(Statement):
    def __init__(self, name, params, body):
        super().__init__()
        self.name = name
        self.params = list(params)
        self.body = [self.add_child(stmt) for stmt in body]

    def __repr__(self):
        return f"FunctionDefinition({self.name}, {self.params})"
