import pytest

from eprime_app.utils.calculator import Calculator, Lexer, TokenType, render
from eprime_app.utils.errors import EvaluationError, ExpressionError, ExpressionParseError


@pytest.fixture
def calc():
    return Calculator()


@pytest.mark.parametrize("expr, expected", [
    ("(3+2)*4", "20"),
    ("5*(6+2)", "40"),
    ("1+2*3", "7"),
    ("10-4-3", "3"),
    ("100/10/5", "2.0"),
    ("7/2", "3.5"),
    ("-3+5", "2"),
    ("-(2+3)", "-5"),
    ("--4", "4"),
    ("2*-3", "-6"),
    ("1.5*2", "3.0"),
    (".5+1", "1.5"),
    ("1e3+1", "1001.0"),
    ("2.5e-1*4", "1.0"),
    (" 1 +  2 ", "3"),
    ("((((7))))", "7"),
    ("5000-1200", "3800"),
    ("5--3", "8"),
])
def test_arithmetic(calc, expr, expected):
    assert calc.compute(expr) == expected


@pytest.mark.parametrize("expr, expected", [
    ("'a' & 'b'", "ab"),
    ("'It''s'", "It's"),
    ("''", ""),
    ("1+2 & 'x'", "3x"),
    ("'n=' & 10/4", "n=2.5"),
    ("'Block ' & (1+1) & '!'", "Block 2!"),
])
def test_strings_and_concatenation(calc, expr, expected):
    assert calc.compute(expr) == expected


def test_evaluate_keeps_native_types(calc):
    assert calc.evaluate("2+2") == 4
    assert isinstance(calc.evaluate("2+2"), int)
    assert calc.evaluate("1/4") == 0.25
    assert calc.evaluate("'x'") == "x"


def test_results_can_be_fed_back_in(calc):
    small = calc.compute("1/100000")
    assert small == "1e-05"
    assert calc.compute(f"{small}+0") == "1e-05"


@pytest.mark.parametrize("expr", [
    "(1+2",
    "1+2)",
    "",
    "   ",
    "1 +",
    "abc",
    "'abc",
    "1 2",
    "3 $ 4",
    "()",
    "*2",
])
def test_malformed_expressions_raise_parse_error(calc, expr):
    with pytest.raises(ExpressionParseError):
        calc.compute(expr)


@pytest.mark.parametrize("expr", [
    "1/0",
    "5/(2-2)",
    "'a'+1",
    "2*'b'",
    "-'a'",
    "1e999",
    "2*1e999",
])
def test_unevaluable_expressions_raise_evaluation_error(calc, expr):
    with pytest.raises(EvaluationError):
        calc.compute(expr)


def test_expression_errors_are_value_errors(calc):
    with pytest.raises(ValueError):
        calc.compute("(1")
    assert issubclass(EvaluationError, ExpressionError)


def test_parse_error_reports_position(calc):
    with pytest.raises(ExpressionParseError) as excinfo:
        calc.compute("1 + #")
    assert excinfo.value.position == 4
    assert "position 4" in str(excinfo.value)


def test_lexer_tokens():
    tokens = Lexer("-(1.5 & 'x')").tokenize()
    assert [t.type for t in tokens] == [
        TokenType.MINUS, TokenType.LPAREN, TokenType.NUMBER, TokenType.AMPERSAND,
        TokenType.STRING, TokenType.RPAREN, TokenType.EOF,
    ]
    assert tokens[2].value == 1.5
    assert tokens[4].value == "x"


def test_render():
    assert render(3) == "3"
    assert render(3.0) == "3.0"
    assert render("abc") == "abc"
