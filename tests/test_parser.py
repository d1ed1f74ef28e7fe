"""Parser tests: statements, blocks and expression precedence."""

import pytest

from minijs import (
    BinaryExpression,
    CallExpression,
    FunctionDeclaration,
    Identifier,
    IfStatement,
    Literal,
    ReturnStatement,
    UnaryExpression,
    VariableDeclaration,
    WhileStatement,
    parse_file,
    parse_source,
)


def parse_expr(text):
    decl = parse_source(f"let v = {text};").body[0]
    return decl.value


def shape(node):
    """Compact nested-tuple view of an expression tree."""
    if isinstance(node, BinaryExpression):
        return (node.operator, shape(node.left), shape(node.right))
    if isinstance(node, UnaryExpression):
        return (node.operator, shape(node.argument))
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, CallExpression):
        return (node.callee_name, [shape(a) for a in node.arguments])
    raise AssertionError(f"unexpected node {node!r}")


# --- statements ---


def test_variable_declaration_untyped():
    decl = parse_source("let x = 1;").body[0]
    assert isinstance(decl, VariableDeclaration)
    assert decl.name == "x"
    assert decl.kind == "let"
    assert decl.declared_type == "null"
    assert shape(decl.value) == 1


def test_variable_declaration_typed_const():
    decl = parse_source("const float ratio = 2.5;").body[0]
    assert decl.kind == "const"
    assert decl.declared_type == "float"
    assert decl.name == "ratio"
    assert decl.value.kind == "float"


def test_type_name_used_as_variable_name():
    decl = parse_source("let int = 3;").body[0]
    assert decl.name == "int"
    assert decl.declared_type == "null"


def test_declared_type_is_not_checked():
    decl = parse_source("let string s = true;").body[0]
    assert decl.declared_type == "string"
    assert decl.value.kind == "bool"


def test_return_statement():
    stmt = parse_source("return 1 + x;").body[0]
    assert isinstance(stmt, ReturnStatement)
    assert shape(stmt.argument) == ("+", 1, "x")


def test_call_statement():
    stmt = parse_source("console.log(1, (2 + 3));").body[0]
    assert isinstance(stmt, CallExpression)
    assert stmt.callee_name == "console.log"
    assert [shape(a) for a in stmt.arguments] == [1, ("+", 2, 3)]


def test_call_arguments_split_on_top_level_commas():
    stmt = parse_source("f(g(1, 2), 3);").body[0]
    assert shape(stmt) == ("f", [("g", [1, 2]), 3])


def test_semicolon_optional_at_end_of_line():
    program = parse_source("let x = 1\nreturn x")
    assert [type(s) for s in program.body] == [VariableDeclaration, ReturnStatement]


def test_statements_on_one_line_need_semicolons():
    program = parse_source("let x = 1; let y = 2;")
    assert [s.name for s in program.body] == ["x", "y"]
    with pytest.raises(SyntaxError, match="Syntax error or unsupported line"):
        parse_source("let x = 1 let y = 2;")


def test_blank_lines_are_ignored():
    program = parse_source("\n\nlet x = 1;\n\n\nreturn x;\n")
    assert len(program.body) == 2


def test_function_declaration():
    program = parse_source("function add(a, b) {\n  return a + b;\n}\nlet r = 1;")
    fn = program.body[0]
    assert isinstance(fn, FunctionDeclaration)
    assert fn.name == "add"
    assert fn.params == ["a", "b"]
    assert isinstance(fn.body[0], ReturnStatement)
    assert isinstance(program.body[1], VariableDeclaration)


def test_function_without_params():
    fn = parse_source("function main() {\n}").body[0]
    assert fn.params == []
    assert fn.body == []


def test_if_without_else():
    stmt = parse_source("if (x < 2) {\n  let y = 3;\n}").body[0]
    assert isinstance(stmt, IfStatement)
    assert shape(stmt.test) == ("<", "x", 2)
    assert len(stmt.consequent) == 1
    assert stmt.alternate is None


def test_if_else_on_one_line():
    stmt = parse_source("if (1 < 2) { let y = 3; } else { let y = 4; }").body[0]
    assert [s.value.value for s in stmt.consequent] == [3]
    assert [s.value.value for s in stmt.alternate] == [4]


def test_while_statement():
    stmt = parse_source("while (i < 10) {\n  console.log(i);\n}").body[0]
    assert isinstance(stmt, WhileStatement)
    assert isinstance(stmt.body[0], CallExpression)


def test_nested_blocks():
    src = (
        "if (a) {\n"
        "  while (b) {\n"
        "    if (c) {\n"
        "      let x = 1;\n"
        "    }\n"
        "  }\n"
        "  let after = 2;\n"
        "}\n"
        "let outer = 3;\n"
    )
    program = parse_source(src)
    assert len(program.body) == 2
    outer_if = program.body[0]
    assert isinstance(outer_if.consequent[0], WhileStatement)
    assert isinstance(outer_if.consequent[0].body[0], IfStatement)
    assert outer_if.consequent[1].name == "after"
    assert program.body[1].name == "outer"


def test_statement_line_numbers():
    program = parse_source("let a = 1;\n\nwhile (a) {\n  return a;\n}")
    assert program.body[0].lineno == 1
    assert program.body[1].lineno == 3
    assert program.body[1].body[0].lineno == 4


def test_parse_file(tmp_path):
    src = tmp_path / "prog.mjs"
    src.write_text("let x = 1;\nconsole.log(x);\n")
    program = parse_file(src)
    assert [type(s) for s in program.body] == [VariableDeclaration, CallExpression]


# --- expressions ---


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1 + 2 * 3", ("+", 1, ("*", 2, 3))),
        ("(1 + 2) * 3", ("*", ("+", 1, 2), 3)),
        ("10 - 4 - 3", ("-", ("-", 10, 4), 3)),
        ("8 / 4 % 3", ("%", ("/", 8, 4), 3)),
        ("2 ^ 3 ^ 2", ("^", ("^", 2, 3), 2)),
        ("2 * 3 ^ 2", ("*", 2, ("^", 3, 2))),
        ("a || b || c", ("||", ("||", "a", "b"), "c")),
        ("a || b < c", ("||", "a", ("<", "b", "c"))),
        ("a < b && c", ("&&", ("<", "a", "b"), "c")),
        ("a <= b + 1", ("<=", "a", ("+", "b", 1))),
        ("!a == b", ("==", ("!", "a"), "b")),
        ("!!flag", ("!", ("!", "flag"))),
        ("1 - -2", ("-", 1, -2)),
    ],
)
def test_precedence_and_associativity(text, expected):
    assert shape(parse_expr(text)) == expected


def test_literal_kinds():
    assert (parse_expr("42").value, parse_expr("42").kind) == (42, "int")
    assert (parse_expr("4.5").value, parse_expr("4.5").kind) == (4.5, "float")
    assert (parse_expr("1e3").value, parse_expr("1e3").kind) == (1000.0, "float")
    assert (parse_expr("-7").value, parse_expr("-7").kind) == (-7, "int")
    assert (parse_expr("true").value, parse_expr("true").kind) == (True, "bool")
    assert (parse_expr("false").value, parse_expr("false").kind) == (False, "bool")


def test_call_in_expression():
    assert shape(parse_expr("f(1) + 2")) == ("+", ("f", [1]), 2)


# --- errors ---


@pytest.mark.parametrize(
    "src, message",
    [
        ("let a = 1 +;", "Unsupported expression"),
        ("let a = ;", "Unsupported expression"),
        ("let a = (1 + 2;", "Unsupported expression"),
        ("let a = b.c;", "Unsupported expression"),
        ("let a = -b;", "Unsupported expression"),
        ("x = 5;", "Syntax error or unsupported line"),
        ("let = 5;", "Syntax error or unsupported line"),
        ("else { }", "Syntax error or unsupported line"),
        ("function (a) {\n}", "Invalid function declaration"),
        ("function f(a, ) {\n}", "Invalid function declaration"),
        ("function f(a)\nreturn a;", "Invalid function declaration"),
        ("if 1 < 2 {\n}", "Invalid if statement"),
        ("if () {\n}", "Invalid if statement"),
        ("if (1) {\n} else return 1;", "Invalid else block"),
        ("while {\n}", "Invalid while statement"),
        ("while (1) {\n  let x = 1;", "Unterminated block"),
        ("if (1) {\n  while (1) {\n  }\n", "Unterminated block"),
    ],
)
def test_syntax_errors(src, message):
    with pytest.raises(SyntaxError, match=message):
        parse_source(src)


def test_syntax_error_reports_line():
    with pytest.raises(SyntaxError) as excinfo:
        parse_source("let x = 1;\nlet y = ;", filename="prog.mjs")
    assert excinfo.value.lineno == 2
    assert excinfo.value.filename == "prog.mjs"
    assert "line 2" in str(excinfo.value)


def test_oversized_integer_literal():
    with pytest.raises(SyntaxError, match="Unsupported expression") as excinfo:
        parse_source("let x = 1;\nlet y = " + "9" * 5000 + ";")
    assert excinfo.value.lineno == 2
    with pytest.raises(SyntaxError, match="Unsupported expression"):
        parse_source("let y = -" + "9" * 5000 + ";")


def test_deeply_nested_parentheses():
    with pytest.raises(SyntaxError, match="nested too deeply"):
        parse_source("let x = " + "(" * 150 + "1" + ")" * 150 + ";")


def test_deeply_nested_blocks():
    src = "if (1) {\n" * 300 + "}\n" * 300
    with pytest.raises(SyntaxError, match="nested too deeply"):
        parse_source(src)


def test_moderate_nesting_still_parses():
    expr = parse_expr("(" * 20 + "1" + ")" * 20)
    assert shape(expr) == 1
