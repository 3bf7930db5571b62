"""Response rule conditions.

Conditions are small boolean expressions such as::

    query.lang == 'fr' && (headers.x-tier == "gold" || body.total >= 100)

They are tokenized, parsed into a tree and evaluated directly against the
request; request values are never spliced into expression text. Grammar,
loosest binding first::

    expression  := or_expr EOF
    or_expr     := and_expr ('||' and_expr)*
    and_expr    := equality ('&&' equality)*
    equality    := relational (('==' | '!=' | '===' | '!==') relational)*
    relational  := unary (('<' | '>' | '<=' | '>=') unary)*
    unary       := '!' unary | primary
    primary     := STRING | NUMBER | 'true' | 'false' | 'null' | 'undefined'
                 | reference | '(' or_expr ')'
    reference   := ('query' | 'headers' | 'body' | 'params') ('.' NAME)+
                 | 'method'

Any character outside this vocabulary is a ``ConditionError``; the
evaluator treats the rule as non-matching and moves on.
"""

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dynapi.exceptions import ConditionError
from dynapi.models import ResponseRule

from .parameters import ParameterView

logger = logging.getLogger(__name__)

MAX_CONDITION_LENGTH = 2048
MAX_NESTING_DEPTH = 64

NAMESPACES = ("query", "headers", "body", "params")
KEYWORD_LITERALS = {"true": True, "false": False, "null": None, "undefined": None}

# Longest operators first so '===' wins over '=='
OPERATORS = ("===", "!==", "==", "!=", "<=", ">=", "&&", "||", "<", ">", "!", "(", ")")
EQUALITY_OPS = {"==": "==", "===": "==", "!=": "!=", "!==": "!="}
RELATIONAL_OPS = ("<", ">", "<=", ">=")
# Plain decimal literals only; no digit separators, inf or nan
DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


@dataclass(frozen=True)
class Token:
    type: str  # STRING, NUMBER, NAME, OP, EOF
    value: Any
    position: int


class Lexer:
    """Split a condition into tokens."""

    ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}

    def __init__(self, source: str):
        self.source = source

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        source = self.source
        i = 0

        while i < len(source):
            char = source[i]

            if char.isspace():
                i += 1
                continue

            if char in ("'", '"'):
                value, i = self._read_string(i)
                tokens.append(Token("STRING", value, i))
                continue

            if char.isdigit() or (
                char in "-." and i + 1 < len(source) and source[i + 1].isdigit()
            ):
                start = i
                value, i = self._read_number(i)
                tokens.append(Token("NUMBER", value, start))
                continue

            if char.isalpha() or char == "_":
                start = i
                name, i = self._read_name(i)
                tokens.append(Token("NAME", name, start))
                continue

            operator = next((op for op in OPERATORS if source.startswith(op, i)), None)
            if operator is not None:
                tokens.append(Token("OP", operator, i))
                i += len(operator)
                continue

            raise ConditionError(f"Unexpected character '{char}'", position=i)

        tokens.append(Token("EOF", None, len(source)))
        return tokens

    def _read_string(self, start: int) -> Tuple[str, int]:
        quote = self.source[start]
        chars: List[str] = []
        i = start + 1
        while i < len(self.source):
            char = self.source[i]
            if char == "\\" and i + 1 < len(self.source):
                escaped = self.source[i + 1]
                chars.append(self.ESCAPES.get(escaped, escaped))
                i += 2
                continue
            if char == quote:
                return "".join(chars), i + 1
            chars.append(char)
            i += 1
        raise ConditionError("Unterminated string literal", position=start)

    def _read_number(self, start: int) -> Tuple[Union[int, float], int]:
        i = start + 1
        while i < len(self.source) and (
            self.source[i].isdigit()
            or self.source[i] == "."
            or (self.source[i] in "eE" and i + 1 < len(self.source))
            or (self.source[i] in "+-" and self.source[i - 1] in "eE")
        ):
            i += 1
        text = self.source[start:i]
        try:
            if any(marker in text for marker in ".eE"):
                return float(text), i
            return int(text), i
        except ValueError:
            raise ConditionError(f"Invalid number '{text}'", position=start)

    def _read_name(self, start: int) -> Tuple[str, int]:
        # Segments after the first dot may contain '-' so header names work
        i = start + 1
        source = self.source
        while i < len(source) and (source[i].isalnum() or source[i] == "_"):
            i += 1
        while i + 1 < len(source) and source[i] == "." and (
            source[i + 1].isalnum() or source[i + 1] in "_-"
        ):
            i += 1
            while i < len(source) and (source[i].isalnum() or source[i] in "_-"):
                i += 1
        return source[start:i], i


# Parse tree


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Reference:
    namespace: str
    path: Tuple[str, ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Logical:
    op: str  # "&&" or "||"
    left: "Node"
    right: "Node"


Node = Union[Literal, Reference, Not, Compare, Logical]


class Parser:
    """Recursive-descent parser producing a ``Node`` tree."""

    def __init__(self, tokens: Sequence[Token]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _at_op(self, *ops: str) -> bool:
        return self.current.type == "OP" and self.current.value in ops

    def parse(self) -> Node:
        node = self._or()
        if self.current.type != "EOF":
            raise ConditionError(
                f"Unexpected token '{self.current.value}'", position=self.current.position
            )
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._at_op("||"):
            self._advance()
            node = Logical("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._equality()
        while self._at_op("&&"):
            self._advance()
            node = Logical("&&", node, self._equality())
        return node

    def _equality(self) -> Node:
        node = self._relational()
        while self._at_op(*EQUALITY_OPS):
            op = EQUALITY_OPS[self._advance().value]
            node = Compare(op, node, self._relational())
        return node

    def _relational(self) -> Node:
        node = self._unary()
        while self._at_op(*RELATIONAL_OPS):
            op = self._advance().value
            node = Compare(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._at_op("!"):
            self._advance()
            return Not(self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self.current

        if token.type in ("STRING", "NUMBER"):
            self._advance()
            return Literal(token.value)

        if token.type == "NAME":
            self._advance()
            return self._name(token)

        if self._at_op("("):
            self._advance()
            self.depth += 1
            if self.depth > MAX_NESTING_DEPTH:
                raise ConditionError("Expression nested too deeply", position=token.position)
            node = self._or()
            self.depth -= 1
            if not self._at_op(")"):
                raise ConditionError("Expected ')'", position=self.current.position)
            self._advance()
            return node

        if token.type == "EOF":
            raise ConditionError("Unexpected end of condition", position=token.position)
        raise ConditionError(f"Unexpected token '{token.value}'", position=token.position)

    @staticmethod
    def _name(token: Token) -> Node:
        name = token.value
        if name in KEYWORD_LITERALS:
            return Literal(KEYWORD_LITERALS[name])
        if name == "method":
            return Reference("method", ())

        namespace, _, rest = name.partition(".")
        if namespace in NAMESPACES and rest:
            path = tuple(rest.split("."))
            if all(path):
                return Reference(namespace, path)
        raise ConditionError(f"Unknown identifier '{name}'", position=token.position)


@lru_cache(maxsize=512)
def compile_condition(source: str) -> Node:
    """Tokenize and parse a condition, caching the tree by source text.

    Raises:
        ConditionError: If the condition is empty, too long or malformed
    """
    if not source or not source.strip():
        raise ConditionError("Empty condition")
    if len(source) > MAX_CONDITION_LENGTH:
        raise ConditionError("Condition too long")
    return Parser(Lexer(source).tokenize()).parse()


# Evaluation


@dataclass
class ConditionScope:
    """The four addressable namespaces plus the request method."""

    query: Dict[str, Any]
    headers: Dict[str, Any]
    body: Any
    params: ParameterView
    method: str = ""

    def lookup(self, reference: Reference) -> Any:
        if reference.namespace == "method":
            return self.method

        head, rest = reference.path[0], reference.path[1:]
        if reference.namespace == "query":
            value = self.query.get(head)
        elif reference.namespace == "headers":
            value = self.headers.get(head.lower())
        elif reference.namespace == "body":
            value = self.body.get(head) if isinstance(self.body, dict) else None
        else:
            value = self.params.get(head)

        for key in rest:
            if isinstance(value, dict):
                value = value.get(key)
            elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
                value = value[int(key)]
            else:
                return None
        return value


def truthy(value: Any) -> bool:
    """Truthiness with JSON semantics: empty containers are still true."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: str) -> Optional[float]:
    text = value.strip()
    if not DECIMAL_PATTERN.fullmatch(text):
        return None
    return float(text)


def _align(left: Any, right: Any) -> Tuple[Any, Any]:
    """Coerce a numeric string compared against a number into a number."""
    if _is_number(left) and isinstance(right, str):
        number = _as_number(right)
        if number is not None:
            return left, number
    elif isinstance(left, str) and _is_number(right):
        number = _as_number(left)
        if number is not None:
            return number, right
    return left, right


def compare(op: str, left: Any, right: Any) -> bool:
    left, right = _align(left, right)

    if op in ("==", "!="):
        if isinstance(left, bool) != isinstance(right, bool):
            equal = False
        else:
            equal = left == right
        return equal if op == "==" else not equal

    if _is_number(left) and _is_number(right):
        pass
    elif not (isinstance(left, str) and isinstance(right, str)):
        return False

    if op == "<":
        return bool(left < right)
    if op == ">":
        return bool(left > right)
    if op == "<=":
        return bool(left <= right)
    return bool(left >= right)


def evaluate(node: Node, scope: ConditionScope) -> Any:
    """Evaluate a parse tree against request values."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Reference):
        return scope.lookup(node)
    if isinstance(node, Not):
        return not truthy(evaluate(node.operand, scope))
    if isinstance(node, Compare):
        return compare(node.op, evaluate(node.left, scope), evaluate(node.right, scope))
    if isinstance(node, Logical):
        left = truthy(evaluate(node.left, scope))
        if node.op == "&&":
            return left and truthy(evaluate(node.right, scope))
        return left or truthy(evaluate(node.right, scope))
    raise ConditionError(f"Unsupported node {type(node).__name__}")


class ConditionEvaluator:
    """Pick one response rule from an ordered list."""

    def matches(self, condition: str, scope: ConditionScope) -> bool:
        """Evaluate one condition.

        Raises:
            ConditionError: If the condition is malformed
        """
        try:
            return truthy(evaluate(compile_condition(condition), scope))
        except RecursionError:
            raise ConditionError("Expression nested too deeply")

    def select(
        self,
        rules: Sequence[ResponseRule],
        scope: ConditionScope,
        endpoint_id: Optional[str] = None,
    ) -> Optional[ResponseRule]:
        """Select the rule to serve.

        Conditioned rules are tried in declared order and the first truthy
        one wins. Otherwise the first unconditioned rule is used, and failing
        that the first rule. A malformed condition only disqualifies its own
        rule.

        Returns:
            The selected rule, or None for an empty rule list
        """
        for index, rule in enumerate(rules):
            if not rule.has_condition:
                continue
            try:
                if self.matches(rule.condition or "", scope):
                    return rule
            except ConditionError as e:
                logger.debug(
                    f"Condition skipped for endpoint {endpoint_id} rule {index}: {e.message}"
                )

        default = next((rule for rule in rules if not rule.has_condition), None)
        if default is not None:
            return default
        return rules[0] if rules else None
