"""Unit tests for core/math.py"""

import pytest

from mdxport.core.errors import MathError
from mdxport.core.math import latex_to_typst


@pytest.mark.parametrize("latex, expected", [
    (r"\alpha + \beta", "alpha + beta"),
    ("mc^2", "m c^2"),
    (r"e^{i\pi}", "e^(i pi)"),
    ("x_1 + x_{10}", "x_1 + x_10"),
    (r"\frac{a}{b}", "frac(a, b)"),
    (r"\sqrt{2}", "sqrt(2)"),
    (r"\sqrt[3]{x}", "root(3, x)"),
    (r"\sum_{i=1}^{n} i", "sum_(i = 1)^n i"),
    (r"\mathbb{R}", "bb(R)"),
    (r"\hat{x}", "hat(x)"),
    (r"a \leq b \neq c", "a <= b != c"),
    (r"\text{if } x", '"if " x'),
    (r"\left( x \right)", "( x )"),
    (r"\operatorname{rank} A", 'op("rank") A'),
    ("a / b", "a \\/ b"),
    (r"a \bmod n", "a mod n"),
    (r"\pmod{n}", "quad (mod n)"),
])
def test_translate(latex, expected):
    assert latex_to_typst(latex) == expected


def test_empty_input():
    assert latex_to_typst("   ") == ""


def test_matrix_environment():
    latex = r"\begin{pmatrix} a & b \\ c & d \end{pmatrix}"
    assert latex_to_typst(latex, is_block=True) == 'mat(delim: "(", a, b; c, d)'


def test_cases_environment():
    latex = r"\begin{cases} 1 & x > 0 \\ 0 & \text{otherwise} \end{cases}"
    assert latex_to_typst(latex, is_block=True) == 'cases(1 & x > 0, 0 & "otherwise")'


def test_aligned_environment():
    latex = r"\begin{aligned} a &= b \\ c &= d \end{aligned}"
    assert latex_to_typst(latex, is_block=True) == "a & = b \\ c & = d"


def test_unknown_command_raises():
    with pytest.raises(MathError, match="unsupported LaTeX command"):
        latex_to_typst(r"\foo{x}")


def test_unknown_environment_raises():
    with pytest.raises(MathError, match="unsupported environment"):
        latex_to_typst(r"\begin{tikzpicture} x \end{tikzpicture}")


def test_mismatched_end_raises():
    with pytest.raises(MathError, match="mismatched"):
        latex_to_typst(r"\begin{matrix} a \end{pmatrix}")


@pytest.mark.parametrize("latex", [r"\frac{a}{b", "a}", r"x^"])
def test_malformed_input_raises(latex):
    with pytest.raises(MathError):
        latex_to_typst(latex)
