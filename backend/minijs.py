#!/usr/bin/env python3
"""
minijs.py
Compiler pipeline for a small C/JavaScript-like language
(lexer → recursive-descent parser → AST → LLVM-style textual IR).

The emitted program is one `@main` procedure plus a printf declaration used
by the `console.log` builtin. Function declarations are parsed but only
leave a placeholder comment in the IR.
"""

import argparse
import logging
import re
import sys
from collections import namedtuple

logger = logging.getLogger(__name__)

# =====================================================
# ERRORS
# =====================================================
# Syntax problems are reported with Python's builtin SyntaxError.

class CompileError(Exception):
    """Base class for errors raised while generating IR."""
    phase = "Codegen"

    def __init__(self, msg, lineno=None):
        super().__init__(msg)
        self.lineno = lineno

class CodegenError(CompileError):
    pass

class UndefinedVariable(CompileError):
    pass

class UnknownNodeKind(CompileError):
    pass

class MissingResultRegister(CompileError):
    pass

def syntax_error(msg, lineno=None, column=None, filename="<source>"):
    return SyntaxError(msg, (filename, lineno, column, None))

def format_error(exc):
    phase = "Syntax" if isinstance(exc, SyntaxError) else exc.phase
    msg = exc.msg if isinstance(exc, SyntaxError) else str(exc)
    if exc.lineno is not None:
        return f"{phase} error (line {exc.lineno}): {msg}"
    return f"{phase} error: {msg}"

# =====================================================
# LEXER
# =====================================================
Token = namedtuple('Token', ['type', 'value', 'lineno', 'column'])

class Lexer:
    KEYWORDS = {'let', 'const', 'if', 'else', 'while', 'function', 'return', 'true', 'false'}
    token_specification = [
        ("NUMBER",    r'\d+(?:\.\d+)?(?:[eE][+\-]?\d+)?'),
        ("ID",        r'[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*'),
        # longest operators first so '<=' never lexes as '<' '='
        ("OP",        r'\|\||&&|==|!=|<=|>=|<|>|\+|\-|\*|/|%|\^|!'),
        ("ASSIGN",    r'='),
        ("END",       r';'),
        ("LPAREN",    r'\('),
        ("RPAREN",    r'\)'),
        ("LBRACE",    r'\{'),
        ("RBRACE",    r'\}'),
        ("COMMA",     r','),
        ("SKIP",      r'[ \t\r]+'),
        ("NEWLINE",   r'\n'),
        ("MISMATCH",  r'.'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n,p in token_specification)
    # the grammar is ASCII; keep \d and \w from matching other scripts
    master_re = re.compile(tok_regex, re.ASCII)

    def __init__(self, code, filename="<source>"):
        self.code = code
        self.filename = filename
        self.lineno = 1
        self.line_start = 0
        self.tokens = []
        self._tokenize()

    def _tokenize(self):
        for mo in self.master_re.finditer(self.code):
            kind = mo.lastgroup
            val = mo.group()
            column = mo.start() - self.line_start + 1
            if kind == "NEWLINE":
                self.lineno += 1
                self.line_start = mo.end()
            elif kind == "SKIP":
                pass
            elif kind == "MISMATCH":
                raise syntax_error(f"Unexpected character {val!r}", self.lineno, column, self.filename)
            elif kind == "ID" and val in Lexer.KEYWORDS:
                self.tokens.append(Token(val.upper(), val, self.lineno, column))
            else:
                self.tokens.append(Token(kind, val, self.lineno, column))
        self.tokens.append(Token('EOF', '', self.lineno, 1))

    def peek_all(self):
        return list(self.tokens)

# =====================================================
# AST NODES
# =====================================================
class Node:
    lineno = None

class Program(Node):
    def __init__(self, body):
        self.body = body

# --- expressions ---

class Literal(Node):
    def __init__(self, value, kind, lineno=None):
        self.value = value
        self.kind = kind  # 'int' | 'float' | 'bool'
        self.lineno = lineno

class Identifier(Node):
    def __init__(self, name, lineno=None):
        self.name = name
        self.lineno = lineno

class BinaryExpression(Node):
    def __init__(self, operator, left, right, lineno=None):
        self.operator = operator
        self.left = left
        self.right = right
        self.lineno = lineno

class UnaryExpression(Node):
    def __init__(self, operator, argument, lineno=None):
        self.operator = operator  # only '!'
        self.argument = argument
        self.lineno = lineno

class CallExpression(Node):
    def __init__(self, callee_name, arguments, lineno=None):
        self.callee_name = callee_name
        self.arguments = arguments
        self.lineno = lineno

# --- statements ---

class VariableDeclaration(Node):
    def __init__(self, name, kind, declared_type, value, lineno=None):
        self.name = name
        self.kind = kind                    # 'let' | 'const'
        self.declared_type = declared_type  # 'int' | 'float' | 'string' | 'bool' | 'null'
        self.value = value
        self.lineno = lineno

class ReturnStatement(Node):
    def __init__(self, argument, lineno=None):
        self.argument = argument
        self.lineno = lineno

class IfStatement(Node):
    def __init__(self, test, consequent, alternate=None, lineno=None):
        self.test = test
        self.consequent = consequent
        self.alternate = alternate  # list of statements or None
        self.lineno = lineno

class WhileStatement(Node):
    def __init__(self, test, body, lineno=None):
        self.test = test
        self.body = body
        self.lineno = lineno

class FunctionDeclaration(Node):
    def __init__(self, name, params, body, lineno=None):
        self.name = name
        self.params = params
        self.body = body
        self.lineno = lineno

# =====================================================
# PARSER (recursive-descent over the token stream)
# =====================================================
DECLARED_TYPES = ('int', 'float', 'string', 'bool')

class Parser:
    def __init__(self, tokens, filename="<source>"):
        self.tokens = tokens
        self.filename = filename
        self.pos = 0

    def peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]

    def peek_n(self, n):
        idx = self.pos + n
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def previous(self):
        return self.tokens[self.pos - 1] if self.pos > 0 else None

    def advance(self):
        tok = self.peek()
        self.pos += 1
        return tok

    def error(self, msg, tok=None):
        tok = tok or self.peek()
        return syntax_error(msg, tok.lineno, tok.column, self.filename)

    def expect(self, ttype, msg, value=None):
        tok = self.peek()
        if tok.type == ttype and (value is None or tok.value == value):
            return self.advance()
        raise self.error(msg, tok)

    def parse(self):
        stmts = []
        try:
            while self.peek().type != 'EOF':
                stmts.append(self.statement())
        except RecursionError:
            raise self.error("Expression nested too deeply") from None
        return Program(stmts)

    def statement(self):
        tok = self.peek()
        if tok.type == 'FUNCTION':
            return self.function_declaration()
        if tok.type == 'IF':
            return self.if_statement()
        if tok.type == 'WHILE':
            return self.while_statement()
        if tok.type == 'RETURN':
            return self.return_statement()
        if tok.type in ('LET', 'CONST'):
            return self.variable_declaration()
        if tok.type == 'ID' and self.peek_n(1).type == 'LPAREN':
            return self.call_statement()
        raise self.error("Syntax error or unsupported line", tok)

    def end_of_statement(self):
        # ';' may be dropped at end of line, before '}' or at end of input
        tok = self.peek()
        if tok.type == 'END':
            self.advance()
            return
        prev = self.previous()
        if tok.type in ('RBRACE', 'EOF') or (prev is not None and tok.lineno > prev.lineno):
            return
        raise self.error("Syntax error or unsupported line", tok)

    def block(self, msg):
        self.expect('LBRACE', msg)
        stmts = []
        while self.peek().type != 'RBRACE':
            if self.peek().type == 'EOF':
                raise self.error("Unterminated block")
            stmts.append(self.statement())
        self.advance()
        return stmts

    def function_declaration(self):
        tok = self.advance()  # FUNCTION
        msg = "Invalid function declaration"
        name_tok = self.expect('ID', msg)
        if '.' in name_tok.value:
            raise self.error(msg, name_tok)
        self.expect('LPAREN', msg)
        params = []
        if self.peek().type != 'RPAREN':
            while True:
                param = self.expect('ID', msg)
                if '.' in param.value:
                    raise self.error(msg, param)
                params.append(param.value)
                if self.peek().type != 'COMMA':
                    break
                self.advance()
        self.expect('RPAREN', msg)
        body = self.block(msg)
        return FunctionDeclaration(name_tok.value, params, body, tok.lineno)

    def condition(self, msg):
        self.expect('LPAREN', msg)
        if self.peek().type == 'RPAREN':
            raise self.error(msg)
        test = self.expression()
        self.expect('RPAREN', msg)
        return test

    def if_statement(self):
        tok = self.advance()  # IF
        msg = "Invalid if statement"
        test = self.condition(msg)
        consequent = self.block(msg)
        alternate = None
        if self.peek().type == 'ELSE':
            self.advance()
            alternate = self.block("Invalid else block")
        return IfStatement(test, consequent, alternate, tok.lineno)

    def while_statement(self):
        tok = self.advance()  # WHILE
        msg = "Invalid while statement"
        test = self.condition(msg)
        body = self.block(msg)
        return WhileStatement(test, body, tok.lineno)

    def return_statement(self):
        tok = self.advance()  # RETURN
        argument = self.expression()
        self.end_of_statement()
        return ReturnStatement(argument, tok.lineno)

    def variable_declaration(self):
        tok = self.advance()  # LET / CONST
        msg = "Syntax error or unsupported line"
        declared_type = "null"
        # `let int x = ...` carries a type; `let int = ...` names a variable `int`
        if (self.peek().type == 'ID' and self.peek().value in DECLARED_TYPES
                and self.peek_n(1).type == 'ID'):
            declared_type = self.advance().value
        name_tok = self.expect('ID', msg)
        if '.' in name_tok.value:
            raise self.error(msg, name_tok)
        self.expect('ASSIGN', msg)
        value = self.expression()
        self.end_of_statement()
        return VariableDeclaration(name_tok.value, tok.value, declared_type, value, tok.lineno)

    def call_statement(self):
        call = self.primary()
        if not isinstance(call, CallExpression):
            raise self.error("Syntax error or unsupported line")
        self.end_of_statement()
        return call

    # Expressions: one method per precedence tier, loosest first.
    # Every tier folds to the left, so `a - b - c` is `(a - b) - c`.
    def expression(self):
        return self.logical_or()

    def binary_tier(self, operators, next_tier):
        node = next_tier()
        while self.peek().type == 'OP' and self.peek().value in operators:
            op_tok = self.advance()
            right = next_tier()
            node = BinaryExpression(op_tok.value, node, right, op_tok.lineno)
        return node

    def logical_or(self):
        return self.binary_tier(('||',), self.logical_and)

    def logical_and(self):
        return self.binary_tier(('&&', '==', '!=', '<=', '>=', '<', '>'), self.additive)

    def additive(self):
        return self.binary_tier(('+', '-'), self.multiplicative)

    def multiplicative(self):
        return self.binary_tier(('*', '/', '%'), self.power)

    def power(self):
        return self.binary_tier(('^',), self.unary)

    def unary(self):
        tok = self.peek()
        if tok.type == 'OP' and tok.value == '!':
            self.advance()
            return UnaryExpression('!', self.unary(), tok.lineno)
        return self.primary()

    def primary(self):
        tok = self.peek()
        if tok.type == 'LPAREN':
            self.advance()
            node = self.expression()
            self.expect('RPAREN', "Unsupported expression")
            return node
        if tok.type == 'ID' and self.peek_n(1).type == 'LPAREN':
            return self.call_expression()
        if tok.type in ('TRUE', 'FALSE'):
            self.advance()
            return Literal(tok.type == 'TRUE', 'bool', tok.lineno)
        if tok.type == 'NUMBER':
            self.advance()
            return self.number(tok.value, tok)
        # a '-' glued to a number is part of the literal
        if (tok.type == 'OP' and tok.value == '-' and self.peek_n(1).type == 'NUMBER'
                and self.peek_n(1).column == tok.column + 1 and self.peek_n(1).lineno == tok.lineno):
            self.advance()
            num = self.advance()
            return self.number('-' + num.value, tok)
        if tok.type == 'ID' and '.' not in tok.value:
            self.advance()
            return Identifier(tok.value, tok.lineno)
        raise self.error("Unsupported expression", tok)

    def call_expression(self):
        name_tok = self.advance()
        self.advance()  # LPAREN
        args = []
        if self.peek().type != 'RPAREN':
            while True:
                args.append(self.expression())
                if self.peek().type != 'COMMA':
                    break
                self.advance()
        self.expect('RPAREN', "Unsupported expression")
        return CallExpression(name_tok.value, args, name_tok.lineno)

    def number(self, text, tok):
        try:
            return number_literal(text, tok.lineno)
        except ValueError:
            # int() refuses very long digit strings
            raise self.error("Unsupported expression", tok) from None

def number_literal(text, lineno=None):
    if '.' in text or 'e' in text or 'E' in text:
        return Literal(float(text), 'float', lineno)
    return Literal(int(text), 'int', lineno)

# =====================================================
# IR MODEL
# =====================================================
class Register(namedtuple('Register', ['number'])):
    __slots__ = ()

    def __str__(self):
        return f"%{self.number}"

class Label(namedtuple('Label', ['role', 'number'])):
    __slots__ = ()

    def __str__(self):
        return f"{self.role}{self.number}"

PRINT_BUILTIN = "console.log"
PRINTF_FORMAT = 'i8* getelementptr ([4 x i8], [4 x i8]* @.str, i32 0, i32 0)'

# source operator -> IR opcode. '&&' and '||' lower to bitwise and/or;
# anything missing here ('^') is emitted as add.
BINARY_OPCODES = {
    '+': 'add',
    '-': 'sub',
    '*': 'mul',
    '/': 'sdiv',
    '%': 'srem',
    '==': 'icmp eq',
    '!=': 'icmp ne',
    '<': 'icmp slt',
    '>': 'icmp sgt',
    '<=': 'icmp sle',
    '>=': 'icmp sge',
    '&&': 'and',
    '||': 'or',
}

def format_value(value):
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

class IRInstruction:
    def __init__(self, op, dest=None, arg1=None, arg2=None, comment=None):
        self.op = op
        self.dest = dest
        self.arg1 = arg1
        self.arg2 = arg2
        self.comment = comment

    @property
    def is_label(self):
        return self.op == 'label'

    def __repr__(self):
        if self.op == 'label':
            return f"{self.dest}:"
        if self.op == 'comment':
            return f"; {self.comment}"
        if self.op == 'alloca':
            return f"{self.dest} = alloca i32"
        if self.op == 'load':
            return f"{self.dest} = load i32, i32* {self.arg1}"
        if self.op == 'store':
            return f"store i32 {self.arg1}, i32* {self.dest}"
        if self.op == 'br':
            return f"br label %{self.dest}"
        if self.op == 'condbr':
            return f"br i1 {self.arg1}, label %{self.dest}, label %{self.arg2}"
        if self.op == 'print':
            return f"call i32 (i8*, ...) @printf({PRINTF_FORMAT}, i32 {self.arg1})"
        if self.op == 'ret':
            return f"ret i32 {self.arg1}"
        return f"{self.dest} = {self.op} i32 {self.arg1}, {self.arg2}"

# =====================================================
# IR GENERATION
# =====================================================
class CompileContext:
    """Per-compilation state: the shared register/label counter and the
    flat symbol table. Create one per compilation, never share it."""

    def __init__(self):
        self.counter = 1
        self.symbols = {}

    def new_register(self):
        reg = Register(self.counter)
        self.counter += 1
        return reg

    def new_labels(self, *roles):
        # all roles share one counter value
        labels = tuple(Label(role, self.counter) for role in roles)
        self.counter += 1
        return labels

class IRGenerator:
    def __init__(self, ctx=None):
        self.ctx = ctx if ctx is not None else CompileContext()
        self.ir = []

    def emit(self, op, **kwargs):
        self.ir.append(IRInstruction(op, **kwargs))

    def gen(self, node):
        if isinstance(node, Program):
            self.gen_block(node.body)
            return self.ir
        if isinstance(node, VariableDeclaration):
            slot = self.ctx.new_register()
            self.emit('alloca', dest=slot)
            value = self.require(self.gen_expr(node.value), node)
            self.emit('store', dest=slot, arg1=value)
            self.ctx.symbols[node.name] = slot
            logger.debug("bound %s -> %s", node.name, slot)
            return
        if isinstance(node, ReturnStatement):
            value = self.require(self.gen_expr(node.argument), node)
            self.emit('ret', arg1=value)
            return
        if isinstance(node, IfStatement):
            cond = self.require(self.gen_expr(node.test), node)
            l_then, l_else, l_end = self.ctx.new_labels('then', 'else', 'endif')
            self.emit('condbr', arg1=cond, dest=l_then, arg2=l_else)
            self.emit('label', dest=l_then)
            self.gen_block(node.consequent)
            self.emit('br', dest=l_end)
            # the else block is always emitted, even when empty
            self.emit('label', dest=l_else)
            self.gen_block(node.alternate or [])
            self.emit('br', dest=l_end)
            self.emit('label', dest=l_end)
            return
        if isinstance(node, WhileStatement):
            l_cond, l_loop, l_end = self.ctx.new_labels('cond', 'loop', 'endloop')
            self.emit('br', dest=l_cond)
            self.emit('label', dest=l_cond)
            cond = self.require(self.gen_expr(node.test), node)
            self.emit('condbr', arg1=cond, dest=l_loop, arg2=l_end)
            self.emit('label', dest=l_loop)
            self.gen_block(node.body)
            self.emit('br', dest=l_cond)
            self.emit('label', dest=l_end)
            return
        if isinstance(node, FunctionDeclaration):
            self.emit('comment', comment="Function declarations are not yet compiled to IR")
            return
        if isinstance(node, (Literal, Identifier, BinaryExpression, UnaryExpression, CallExpression)):
            # expression statement; the result, if any, is dropped
            self.gen_expr(node)
            return
        raise UnknownNodeKind(f"Unknown node type: {type(node).__name__}", getattr(node, 'lineno', None))

    def gen_block(self, stmts):
        for s in stmts:
            self.gen(s)

    def require(self, reg, node):
        if reg is None:
            raise MissingResultRegister("expression produces no value", node.lineno)
        return reg

    def gen_expr(self, expr):
        """Emit `expr` and return the Register holding its value, or None
        when the expression yields nothing (unknown calls)."""
        if isinstance(expr, Literal):
            dest = self.ctx.new_register()
            self.emit('add', dest=dest, arg1='0', arg2=format_value(expr.value))
            return dest
        if isinstance(expr, Identifier):
            slot = self.ctx.symbols.get(expr.name)
            if slot is None:
                raise UndefinedVariable(f"Undefined variable: {expr.name}", expr.lineno)
            dest = self.ctx.new_register()
            self.emit('load', dest=dest, arg1=slot)
            return dest
        if isinstance(expr, BinaryExpression):
            a = self.require(self.gen_expr(expr.left), expr)
            b = self.require(self.gen_expr(expr.right), expr)
            dest = self.ctx.new_register()
            op = BINARY_OPCODES.get(expr.operator)
            if op is None:
                logger.warning("line %s: no opcode for operator %r, emitting add",
                               expr.lineno, expr.operator)
                op = 'add'
            self.emit(op, dest=dest, arg1=a, arg2=b)
            return dest
        if isinstance(expr, UnaryExpression):
            t = self.require(self.gen_expr(expr.argument), expr)
            dest = self.ctx.new_register()
            self.emit('icmp eq', dest=dest, arg1=t, arg2='0')
            return dest
        if isinstance(expr, CallExpression):
            if expr.callee_name != PRINT_BUILTIN:
                logger.warning("line %s: unknown call to %s", expr.lineno, expr.callee_name)
                self.emit('comment', comment=f"Unknown call to {expr.callee_name}")
                return None
            if not expr.arguments:
                raise CodegenError(f"{PRINT_BUILTIN} expects an argument", expr.lineno)
            regs = [self.require(self.gen_expr(a), expr) for a in expr.arguments]
            self.emit('print', arg1=regs[0])
            # printing yields no value; `let y = console.log(1);` is rejected
            return None
        raise UnknownNodeKind(f"Unknown node type: {type(expr).__name__}", getattr(expr, 'lineno', None))

# =====================================================
# PROGRAM ASSEMBLY
# =====================================================
PREAMBLE = [
    '@.str = private unnamed_addr constant [4 x i8] c"%d\\0A\\00"',
    'declare i32 @printf(i8*, ...)',
]

def render_program(ir):
    lines = list(PREAMBLE)
    lines.append('define i32 @main() {')
    lines.append('entry:')
    for instr in ir:
        lines.append(repr(instr) if instr.is_label else f"  {instr!r}")
    lines.append('  ret i32 0')
    lines.append('}')
    return '\n'.join(lines) + '\n'

def generate_ir(program):
    """Lower a parsed Program to IR text using a fresh CompileContext."""
    irgen = IRGenerator(CompileContext())
    try:
        ir = irgen.gen(program)
    except RecursionError:
        raise CodegenError("Program nested too deeply") from None
    logger.debug("generated %d instructions", len(ir))
    return render_program(ir)

# =====================================================
# COMPILER DRIVER
# =====================================================
def parse_source(code, filename="<source>"):
    toks = Lexer(code, filename).peek_all()
    return Parser(toks, filename).parse()

def parse_file(path):
    with open(path, encoding='utf-8') as f:
        code = f.read()
    return parse_source(code, filename=str(path))

def compile_to_ir(code, filename="<source>"):
    """Compile source text to IR text; syntax and codegen errors propagate."""
    return generate_ir(parse_source(code, filename))

def compile_source(code, verbose=False):
    """Run every phase and collect the results instead of raising.

    Returns a dict with `tokens`, `ast`, `ir` and `errors`. On failure `ir`
    is the empty string and `errors` holds one formatted message.
    """
    result = {
        'tokens': [],
        'ast': None,
        'ir': '',
        'errors': [],
    }

    try:
        toks = Lexer(code).peek_all()
        result['tokens'] = toks
        logger.debug("lexed %d tokens", len(toks))

        ast = Parser(toks).parse()
        result['ast'] = ast
        logger.debug("parsed %d top-level statements", len(ast.body))

        result['ir'] = generate_ir(ast)
    except (SyntaxError, CompileError) as e:
        result['errors'] = [format_error(e)]
        logger.debug("compilation failed: %s", result['errors'][0])
        return result

    if verbose:
        logger.info("IR:\n%s", result['ir'])
    return result

def main(argv=None):
    ap = argparse.ArgumentParser(prog="minijs", description="Compile a minijs source file to LLVM-style IR.")
    ap.add_argument("input", help="source file")
    ap.add_argument("-o", "--output", help="write IR here instead of stdout")
    ap.add_argument("-v", "--verbose", action="store_true", help="log compiler phases")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        program = parse_file(args.input)
        ir_text = generate_ir(program)
    except OSError as e:
        print(f"minijs: {args.input}: {e.strerror or e}", file=sys.stderr)
        return 1
    except (SyntaxError, CompileError) as e:
        print(f"minijs: {format_error(e)}", file=sys.stderr)
        return 1

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(ir_text)
        logger.info("wrote %s", args.output)
    else:
        sys.stdout.write(ir_text)
    return 0

if __name__ == '__main__':
    sys.exit(main())
