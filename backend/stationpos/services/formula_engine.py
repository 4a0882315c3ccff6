# Overview: Sandboxed evaluator for dynamic pricing formulas.

"""
Pricing formula language (fixed grammar, no eval()):

    expr    := term (("+" | "-") term)*
    term    := factor (("*" | "/") factor)*
    factor  := NUMBER | NAME | NAME "(" expr ("," expr)* ")" | "(" expr ")" | "-" factor

Names resolve against the evaluation scope (basePrice, quantity, weight).
Functions: min, max. Arithmetic is Decimal throughout.
"""

from __future__ import annotations

from decimal import Decimal, DecimalException, InvalidOperation
from typing import Mapping, Optional


MAX_FORMULA_LENGTH = 512
MAX_NESTING_DEPTH = 32

_FUNCTIONS = {
    "min": min,
    "max": max,
}


class FormulaError(ValueError):
    """Raised when a formula cannot be parsed or evaluated."""


def _tokenize(formula: str) -> list[str]:
    tokens = []
    i = 0
    s = formula.strip()
    while i < len(s):
        c = s[i]
        if c.isspace():
            i += 1
        elif c.isdigit() or c == ".":
            j = i
            while j < len(s) and (s[j].isdigit() or s[j] == "."):
                j += 1
            tokens.append(s[i:j])
            i = j
        elif c.isalpha() or c == "_":
            j = i
            while j < len(s) and (s[j].isalnum() or s[j] == "_"):
                j += 1
            tokens.append(s[i:j])
            i = j
        elif c in "()+-*/,":
            tokens.append(c)
            i += 1
        else:
            raise FormulaError(f"Unexpected character in formula: '{c}'")
    return tokens


class _FormulaParser:
    """Recursive descent parser that evaluates while it parses."""

    def __init__(self, tokens: list[str], scope: Mapping[str, Decimal]):
        self._tokens = tokens
        self._pos = 0
        self._scope = scope
        self._depth = 0

    def _peek(self) -> Optional[str]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _consume(self) -> str:
        if self._pos >= len(self._tokens):
            raise FormulaError("Unexpected end of formula")
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _expect(self, expected: str) -> None:
        tok = self._consume()
        if tok != expected:
            raise FormulaError(f"Expected '{expected}', got '{tok}'")

    def parse(self) -> Decimal:
        if not self._tokens:
            raise FormulaError("Empty formula")
        result = self._parse_expr()
        if self._peek() is not None:
            raise FormulaError(f"Unexpected token: {self._peek()}")
        return result

    def _parse_expr(self) -> Decimal:
        left = self._parse_term()
        while self._peek() in ("+", "-"):
            op = self._consume()
            right = self._parse_term()
            left = left + right if op == "+" else left - right
        return left

    def _parse_term(self) -> Decimal:
        left = self._parse_factor()
        while self._peek() in ("*", "/"):
            op = self._consume()
            right = self._parse_factor()
            if op == "*":
                left = left * right
            else:
                if right == 0:
                    raise FormulaError("Division by zero in formula")
                left = left / right
        return left

    def _parse_factor(self) -> Decimal:
        # Parentheses, unary minus and function arguments all recurse through here.
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise FormulaError(f"Formula nesting deeper than {MAX_NESTING_DEPTH} levels")
        try:
            return self._parse_atom()
        finally:
            self._depth -= 1

    def _parse_atom(self) -> Decimal:
        tok = self._peek()
        if tok is None:
            raise FormulaError("Unexpected end of formula")

        if tok == "(":
            self._consume()
            value = self._parse_expr()
            self._expect(")")
            return value

        if tok == "-":
            self._consume()
            return -self._parse_factor()

        if tok[0].isdigit() or tok[0] == ".":
            self._consume()
            try:
                return Decimal(tok)
            except InvalidOperation:
                raise FormulaError(f"Invalid number: {tok}")

        self._consume()
        if self._peek() == "(":
            return self._call(tok)

        if tok not in self._scope:
            raise FormulaError(
                f"Unknown variable '{tok}'. Available: {sorted(self._scope.keys())}"
            )
        return self._scope[tok]

    def _call(self, name: str) -> Decimal:
        func = _FUNCTIONS.get(name)
        if func is None:
            raise FormulaError(f"Unknown function '{name}'")
        self._expect("(")
        args = [self._parse_expr()]
        while self._peek() == ",":
            self._consume()
            args.append(self._parse_expr())
        self._expect(")")
        if len(args) < 2:
            raise FormulaError(f"{name}() needs at least two arguments")
        return func(args)


def evaluate_formula(formula: str, scope: Mapping[str, Decimal]) -> Decimal:
    """
    Evaluate a pricing formula against the given variable bindings.

    Raises FormulaError on any syntax or evaluation problem.
    """
    if not formula or len(formula) > MAX_FORMULA_LENGTH:
        raise FormulaError("Formula is empty or too long")

    parser = _FormulaParser(_tokenize(formula), scope)
    try:
        return parser.parse()
    except DecimalException as exc:
        raise FormulaError(str(exc)) from exc
    except RecursionError as exc:
        raise FormulaError("Formula is nested too deeply") from exc
