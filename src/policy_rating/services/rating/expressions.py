# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Restricted arithmetic expressions for expression steps.

The grammar is small: numeric literals, identifiers, the four
arithmetic operators with standard precedence, unary minus and parentheses.
There are no function calls, attribute access or string operations, and
nothing is ever passed to ``eval``.

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("-" | "+") unary | primary
    primary := NUMBER | IDENT | "(" expr ")"
"""

import re
from collections.abc import Callable
from decimal import Decimal, InvalidOperation

from attrs import frozen
from beartype import beartype

from ...core.result_types import Err, Ok, Result

_TOKEN_PATTERN = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)|(?P<op>[-+*/()]))"
)

MAX_EXPRESSION_LENGTH = 1000


@frozen
class Token:
    """Lexical token with its source offset."""

    kind: str  # number | ident | op
    text: str
    position: int


@frozen
class NumberNode:
    value: Decimal


@frozen
class NameNode:
    name: str


@frozen
class NegateNode:
    operand: "ExpressionNode"


@frozen
class BinaryNode:
    operator: str
    left: "ExpressionNode"
    right: "ExpressionNode"


ExpressionNode = NumberNode | NameNode | NegateNode | BinaryNode


@frozen
class ExpressionValue:
    """Evaluated expression with any warnings raised along the way."""

    value: Decimal
    warnings: tuple[str, ...] = ()


@beartype
def tokenize(text: str) -> Result[list[Token], str]:
    """Split an expression into tokens."""
    if len(text) > MAX_EXPRESSION_LENGTH:
        return Err(f"Expression exceeds {MAX_EXPRESSION_LENGTH} characters")

    tokens: list[Token] = []
    position = 0
    stripped_end = len(text.rstrip())
    while position < stripped_end:
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            offending = text[position:].lstrip()[:1]
            return Err(f"Unexpected character {offending!r} at position {position}")
        kind = match.lastgroup or "op"
        tokens.append(Token(kind=kind, text=match.group(kind), position=match.start(kind)))
        position = match.end()
    return Ok(tokens)


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def _peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def parse(self) -> ExpressionNode:
        if not self._tokens:
            raise ValueError("Expression is empty")
        node = self._expr()
        trailing = self._peek()
        if trailing is not None:
            raise ValueError(
                f"Unexpected token {trailing.text!r} at position {trailing.position}"
            )
        return node

    def _expr(self) -> ExpressionNode:
        node = self._term()
        while (token := self._peek()) is not None and token.text in ("+", "-"):
            self._advance()
            node = BinaryNode(operator=token.text, left=node, right=self._term())
        return node

    def _term(self) -> ExpressionNode:
        node = self._unary()
        while (token := self._peek()) is not None and token.text in ("*", "/"):
            self._advance()
            node = BinaryNode(operator=token.text, left=node, right=self._unary())
        return node

    def _unary(self) -> ExpressionNode:
        token = self._peek()
        if token is not None and token.text == "-":
            self._advance()
            return NegateNode(operand=self._unary())
        if token is not None and token.text == "+":
            self._advance()
            return self._unary()
        return self._primary()

    def _primary(self) -> ExpressionNode:
        token = self._peek()
        if token is None:
            raise ValueError("Unexpected end of expression")
        self._advance()
        if token.kind == "number":
            return NumberNode(value=Decimal(token.text))
        if token.kind == "ident":
            return NameNode(name=token.text)
        if token.text == "(":
            node = self._expr()
            closing = self._peek()
            if closing is None or closing.text != ")":
                raise ValueError(f"Unclosed parenthesis at position {token.position}")
            self._advance()
            return node
        raise ValueError(f"Unexpected token {token.text!r} at position {token.position}")


@beartype
def parse_expression(text: str) -> Result[ExpressionNode, str]:
    """Parse an expression into a syntax tree.

    Args:
        text: Expression source, e.g. ``base_rate * (1 + surcharge_pct / 100)``

    Returns:
        Result containing the root node or a syntax error message
    """
    tokens = tokenize(text)
    if tokens.is_err():
        return Err(tokens.unwrap_err())
    try:
        return Ok(_Parser(tokens.unwrap()).parse())
    except ValueError as e:
        return Err(str(e))
    except RecursionError:
        return Err("Expression is nested too deeply")


@beartype
def referenced_names(node: ExpressionNode) -> list[str]:
    """Identifiers referenced by an expression, in first-use order."""
    names: list[str] = []
    stack: list[ExpressionNode] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, NameNode):
            if current.name not in names:
                names.append(current.name)
        elif isinstance(current, NegateNode):
            stack.append(current.operand)
        elif isinstance(current, BinaryNode):
            # Right first so the left operand is visited first
            stack.append(current.right)
            stack.append(current.left)
    return names


def _evaluate(
    node: ExpressionNode,
    lookup: Callable[[str], Decimal | None],
    warnings: list[str],
) -> Decimal:
    if isinstance(node, NumberNode):
        return node.value
    if isinstance(node, NameNode):
        value = lookup(node.name)
        if value is None:
            raise KeyError(node.name)
        return value
    if isinstance(node, NegateNode):
        return -_evaluate(node.operand, lookup, warnings)

    left = _evaluate(node.left, lookup, warnings)
    right = _evaluate(node.right, lookup, warnings)
    if node.operator == "+":
        return left + right
    if node.operator == "-":
        return left - right
    if node.operator == "*":
        return left * right
    if right == 0:
        warnings.append("Division by zero in expression evaluated as 0")
        return Decimal("0")
    return left / right


@beartype
def evaluate_expression(
    node: ExpressionNode,
    lookup: Callable[[str], Decimal | None],
) -> Result[ExpressionValue, str]:
    """Evaluate a parsed expression.

    Args:
        node: Root of the parsed expression
        lookup: Returns the numeric value bound to an identifier, or None
            when the identifier is unknown

    Returns:
        Result containing the value and warnings, or an error for unknown
        identifiers
    """
    warnings: list[str] = []
    try:
        value = _evaluate(node, lookup, warnings)
    except KeyError as e:
        return Err(f"Unknown identifier '{e.args[0]}'")
    except InvalidOperation:
        return Err("Expression produced an invalid number")
    except RecursionError:
        return Err("Expression is nested too deeply")
    return Ok(ExpressionValue(value=value, warnings=tuple(warnings)))
