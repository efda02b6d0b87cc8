"""LaTeX math to Typst math translation.

The translator is a small recursive-descent pass over LaTeX tokens. It covers
the commands that show up in technical prose (greek letters, operators,
relations, arrows, fractions, roots, scripts, accents, font styles, text,
matrices, cases and aligned environments) and raises MathError for anything
it does not know, so a document never silently renders garbage math.

Typst math treats juxtaposed letters as one identifier, so every atom is
emitted as a separate space-separated item (`mc^2` becomes `m c^2`).
"""

import re
from typing import Callable, Optional

from mdxport.core.errors import MathError
from mdxport.core.utils.escape import escape_string


MathTranslator = Callable[[str, bool], str]

TOKEN_RE = re.compile(r"""
     (?P<command>\\(?:[A-Za-z]+|.))
    |(?P<lbrace>\{)
    |(?P<rbrace>\})
    |(?P<sup>\^)
    |(?P<sub>_)
    |(?P<amp>&)
    |(?P<number>\d+(?:\.\d+)?)
    |(?P<letter>[A-Za-z])
    |(?P<space>\s+)
    |(?P<comment>%[^\n]*)
    |(?P<other>.)
""", re.VERBOSE | re.DOTALL)

GREEK = {
    "alpha", "beta", "gamma", "delta", "zeta", "eta", "theta", "iota", "kappa",
    "lambda", "mu", "nu", "xi", "omicron", "pi", "rho", "sigma", "tau", "upsilon",
    "chi", "psi", "omega", "Gamma", "Delta", "Theta", "Lambda", "Xi", "Pi",
    "Sigma", "Upsilon", "Phi", "Psi", "Omega",
}

OPERATORS = {
    "sin", "cos", "tan", "cot", "sec", "csc", "arcsin", "arccos", "arctan",
    "sinh", "cosh", "tanh", "coth", "log", "ln", "lg", "exp", "lim", "liminf",
    "limsup", "max", "min", "sup", "inf", "det", "dim", "ker", "deg", "gcd",
    "arg", "Pr", "hom", "mod",
}

SYMBOLS = {
    # greek variants
    "epsilon": "ϵ", "varepsilon": "ε", "phi": "ϕ", "varphi": "φ",
    "vartheta": "ϑ", "varrho": "ϱ", "varsigma": "ς", "varpi": "ϖ",
    # big operators
    "sum": "sum", "prod": "product", "coprod": "∐", "int": "integral",
    "iint": "∬", "iiint": "∭", "oint": "∮", "bigcup": "⋃", "bigcap": "⋂",
    "bigoplus": "⨁", "bigotimes": "⨂",
    # binary operators
    "cdot": "dot.op", "times": "times", "div": "÷", "pm": "±", "mp": "∓",
    "ast": "∗", "star": "⋆", "circ": "∘", "bullet": "∙", "oplus": "⊕",
    "otimes": "⊗", "cup": "∪", "cap": "∩", "setminus": "∖", "wedge": "∧",
    "land": "∧", "vee": "∨", "lor": "∨",
    # relations
    "leq": "<=", "le": "<=", "geq": ">=", "ge": ">=", "neq": "!=", "ne": "!=",
    "approx": "≈", "equiv": "≡", "sim": "∼", "simeq": "≃", "cong": "≅",
    "propto": "∝", "ll": "≪", "gg": "≫", "in": "∈", "notin": "∉", "ni": "∋",
    "subset": "⊂", "subseteq": "⊆", "supset": "⊃", "supseteq": "⊇",
    "perp": "⊥", "parallel": "∥", "mid": "∣", "prec": "≺", "succ": "≻",
    # arrows
    "to": "->", "rightarrow": "->", "gets": "<-", "leftarrow": "<-",
    "Rightarrow": "=>", "Leftarrow": "⇐", "leftrightarrow": "<->",
    "Leftrightarrow": "<=>", "iff": "<==>", "implies": "==>", "mapsto": "|->",
    "uparrow": "↑", "downarrow": "↓", "longrightarrow": "-->",
    # misc
    "infty": "infinity", "partial": "∂", "nabla": "∇", "forall": "∀",
    "exists": "∃", "nexists": "∄", "emptyset": "∅", "varnothing": "∅",
    "neg": "¬", "lnot": "¬", "angle": "∠", "triangle": "△", "hbar": "ℏ",
    "ell": "ℓ", "aleph": "ℵ", "Re": "ℜ", "Im": "ℑ", "wp": "℘", "prime": "′",
    "top": "⊤", "bot": "⊥", "degree": "°",
    "cdots": "dots.c", "ldots": "dots.h", "dots": "dots.h", "vdots": "dots.v",
    "ddots": "dots.down",
    "langle": "⟨", "rangle": "⟩", "lfloor": "⌊", "rfloor": "⌋",
    "lceil": "⌈", "rceil": "⌉", "|": "‖", "vert": "|", "Vert": "‖",
    # spacing
    ",": "thin", ":": "med", ">": "med", ";": "thick", "quad": "quad",
    "qquad": "wide", " ": "space", "!": "",
    # escaped characters
    "{": "\\{", "}": "\\}", "%": "%", "$": "\\$", "#": "\\#", "&": "\\&",
    "_": "\\_",
}

FRACTIONS = {"frac", "dfrac", "tfrac", "cfrac"}

ACCENTS = {
    "hat": "hat", "widehat": "hat", "tilde": "tilde", "widetilde": "tilde",
    "bar": "overline", "overline": "overline", "underline": "underline",
    "vec": "arrow", "overrightarrow": "arrow", "dot": "dot", "ddot": "dot.double",
    "overbrace": "overbrace", "underbrace": "underbrace",
}

STYLES = {
    "mathbb": "bb", "mathbf": "bold", "boldsymbol": "bold", "bm": "bold",
    "mathit": "italic", "mathrm": "upright", "mathcal": "cal",
    "mathfrak": "frak", "mathsf": "sans", "mathtt": "mono",
}

TEXT_COMMANDS = {"text", "textrm", "textnormal", "mbox", "textit", "textbf"}
TEXT_STYLES = {"textit": "italic", "textbf": "bold"}

# commands with no visual effect in Typst math
IGNORED = {
    "left", "right", "big", "Big", "bigg", "Bigg", "bigl", "bigr", "Bigl",
    "Bigr", "biggl", "biggr", "displaystyle", "textstyle", "scriptstyle",
    "limits", "nolimits", "nonumber", "notag",
}
IGNORED_WITH_ARG = {"label", "tag"}

MATRIX_DELIMS = {
    "matrix": "#none", "smallmatrix": "#none", "array": "#none",
    "pmatrix": '"("', "bmatrix": '"["', "Bmatrix": '"{"',
    "vmatrix": '"|"', "Vmatrix": '"||"',
}
ALIGNED_ENVS = {
    "aligned", "align", "align*", "alignat", "alignat*", "gather", "gather*",
    "gathered", "equation", "equation*", "split", "multline", "multline*",
}

SIMPLE_SCRIPT_RE = re.compile(r"[A-Za-z]|\d+|[A-Za-z][A-Za-z.]+|[^\x00-\x7f]")


class _Separator(str):
    """Marker items for `&` and `\\\\` inside environments."""


AMP = _Separator("&")
ROW = _Separator("\\\\")


class _Translator:
    def __init__(self, latex: str, is_block: bool):
        self.tokens = [
            (m.lastgroup, m.group())
            for m in TOKEN_RE.finditer(latex)
            if m.lastgroup != "comment"
        ]
        self.pos = 0
        self.is_block = is_block
        self.arg_depth = 0

    # --- token helpers ---

    def peek(self) -> Optional[tuple[str, str]]:
        while self.pos < len(self.tokens) and self.tokens[self.pos][0] == "space":
            self.pos += 1
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise MathError("unexpected end of input")
        self.pos += 1
        return token

    def expect(self, kind: str) -> None:
        token = self.next()
        if token[0] != kind:
            raise MathError(f"expected {kind}, found {token[1]!r}")

    def read_raw_group(self) -> str:
        """Read `{...}` verbatim (for \\text and environment names)."""
        self.expect("lbrace")
        depth, parts = 1, []
        while True:
            if self.pos >= len(self.tokens):
                raise MathError("unexpected end of input")
            kind, text = self.tokens[self.pos]
            self.pos += 1
            if kind == "space":
                text = " "
            if kind == "lbrace":
                depth += 1
            elif kind == "rbrace":
                depth -= 1
                if depth == 0:
                    return "".join(parts)
            parts.append(text)

    def read_optional(self) -> Optional[str]:
        """Read a `[...]` optional argument, translated."""
        if self.peek() != ("other", "["):
            return None
        self.pos += 1
        items = self.parse_sequence(stop=lambda t: t == ("other", "]"))
        self.expect("other")
        return self.join(items)

    # --- grammar ---

    def translate(self) -> str:
        items = self.parse_sequence(stop=lambda t: False)
        if self.pos < len(self.tokens):
            raise MathError(f"unexpected {self.tokens[self.pos][1]!r}")
        return self.join(items, top_level=True)

    def join(self, items: list[str], top_level: bool = False) -> str:
        out = []
        for item in items:
            if item is AMP:
                out.append("&")
            elif item is ROW:
                out.append("\\\n" if self.is_block and top_level else "\\")
            elif item:
                out.append(item)
        return " ".join(out).replace(" \\\n ", " \\\n")

    def parse_sequence(self, stop) -> list[str]:
        items: list[str] = []
        while (token := self.peek()) is not None:
            if token[0] == "rbrace" or stop(token):
                break
            if token[0] in ("sup", "sub"):
                self.pos += 1
                arg = self.parse_argument()
                base = items.pop() if items and not isinstance(items[-1], _Separator) else '""'
                marker = "^" if token[0] == "sup" else "_"
                items.append(f"{base}{marker}{self.script(arg)}")
                continue
            item = self.parse_atom()
            if isinstance(item, list):
                items.extend(item)
            elif item is not None:
                items.append(item)
        return items

    def script(self, arg: str) -> str:
        return arg if SIMPLE_SCRIPT_RE.fullmatch(arg) else f"({arg})"

    def parse_argument(self) -> str:
        """A single argument: a braced group or one token (first digit of a number)."""
        token = self.peek()
        if token is None:
            raise MathError("missing argument")
        kind, text = token
        if kind == "lbrace":
            self.pos += 1
            self.arg_depth += 1
            items = self.parse_sequence(stop=lambda t: False)
            self.arg_depth -= 1
            self.expect("rbrace")
            return self.join(items)
        if kind == "number" and len(text) > 1:
            self.tokens[self.pos] = ("number", text[1:])
            return text[0]
        self.arg_depth += 1
        item = self.parse_atom()
        self.arg_depth -= 1
        if isinstance(item, list):
            return self.join(item)
        return item or ""

    def parse_atom(self):
        kind, text = self.next()
        if kind == "lbrace":
            items = self.parse_sequence(stop=lambda t: False)
            self.expect("rbrace")
            return items
        if kind in ("letter", "number"):
            return text
        if kind == "amp":
            return AMP
        if kind == "command":
            return self.parse_command(text[1:])
        if kind == "other":
            return self.symbol(text)
        raise MathError(f"unexpected {text!r}")

    def symbol(self, ch: str) -> str:
        if ch in ",;" and self.arg_depth:
            return f"\\{ch}"
        if ch in '/"#$@':
            return f"\\{ch}"
        if ch == "~":
            return ""
        if ch == "\\":
            raise MathError("dangling backslash")
        return ch

    def parse_command(self, name: str):
        if name == "\\":
            return ROW
        if name in GREEK or name in OPERATORS:
            return name
        if name in SYMBOLS:
            return SYMBOLS[name]
        if name in IGNORED:
            if name in ("left", "right") and self.peek() == ("other", "."):
                self.pos += 1
            return None
        if name in IGNORED_WITH_ARG:
            self.read_raw_group()
            return None
        if name in FRACTIONS:
            return self.call("frac", 2)
        if name == "binom":
            return self.call("binom", 2)
        if name == "bmod":
            return "mod"
        if name == "pmod":
            return f"quad (mod {self.wrapped_argument()})"
        if name == "sqrt":
            index = self.read_optional()
            radicand = self.wrapped_argument()
            return f"root({index}, {radicand})" if index else f"sqrt({radicand})"
        if name in ACCENTS:
            return self.call(ACCENTS[name], 1)
        if name in STYLES:
            return self.call(STYLES[name], 1)
        if name in TEXT_COMMANDS:
            text = f'"{escape_string(self.read_raw_group())}"'
            style = TEXT_STYLES.get(name)
            return f"{style}({text})" if style else text
        if name == "operatorname":
            if self.peek() == ("other", "*"):
                self.pos += 1
            return f'op("{escape_string(self.read_raw_group())}")'
        if name == "begin":
            return self.parse_environment()
        raise MathError(f"unsupported LaTeX command \\{name}")

    def wrapped_argument(self) -> str:
        self.arg_depth += 1
        try:
            return self.parse_argument()
        finally:
            self.arg_depth -= 1

    def call(self, func: str, arity: int) -> str:
        args = [self.wrapped_argument() for _ in range(arity)]
        return f"{func}({', '.join(args)})"

    def parse_environment(self) -> str:
        env = self.read_raw_group().strip()
        if env == "array":
            self.read_raw_group()
        if env not in MATRIX_DELIMS and env not in ALIGNED_ENVS and env != "cases":
            raise MathError(f"unsupported environment {env!r}")

        self.arg_depth += 1
        items = self.parse_sequence(stop=lambda t: t == ("command", "\\end"))
        self.arg_depth -= 1
        self.expect("command")
        if self.read_raw_group().strip() != env:
            raise MathError(f"mismatched \\end for environment {env!r}")

        rows = self.split_rows(items)
        if env in MATRIX_DELIMS:
            cells = "; ".join(", ".join(self.split_cells(row)) for row in rows)
            return f"mat(delim: {MATRIX_DELIMS[env]}, {cells})"
        if env == "cases":
            return f"cases({', '.join(self.join(row) for row in rows)})"
        return " \\ ".join(self.join(row) for row in rows)

    def split_rows(self, items: list[str]) -> list[list[str]]:
        rows: list[list[str]] = [[]]
        for item in items:
            if item is ROW:
                rows.append([])
            else:
                rows[-1].append(item)
        return [row for row in rows if row]

    def split_cells(self, row: list[str]) -> list[str]:
        cells: list[list[str]] = [[]]
        for item in row:
            if item is AMP:
                cells.append([])
            else:
                cells[-1].append(item)
        return [self.join(cell) or '""' for cell in cells]


def latex_to_typst(latex: str, is_block: bool = False) -> str:
    """Translate a LaTeX math span into Typst math; raises MathError on unsupported input."""
    latex = latex.strip()
    if not latex:
        return ""
    braces = 0
    for kind, text in ((m.lastgroup, m.group()) for m in TOKEN_RE.finditer(latex)):
        braces += {"lbrace": 1, "rbrace": -1}.get(kind, 0)
        if braces < 0:
            raise MathError("unbalanced braces")
    if braces:
        raise MathError("unbalanced braces")
    return _Translator(latex, is_block).translate()
