"""
Guest Order Service — 一覧クエリの解析

  $filter   status eq 'PENDING' and (createdAt ge '2024-01-01' or id in ['a','b'])
  $orderby  createdAt desc,status
  $top      ページサイズ (1..max_page_size)
  $skip     オフセット
  $paginate false は拒否する(この一覧はページングが必須)

$filter は SQL の WHERE 句の断片とバインドパラメータに変換する。
列名はホワイトリストからのみ生成し、値は必ずバインドする。
"""

import re
from dataclasses import dataclass, field
from typing import Any

from .config import PaginationConfiguration
from .errors import WrongParameterError

# 外部フィールド名 → guest_orders の列名
FIELD_COLUMNS = {
    "id": "id",
    "organizationId": "organization_id",
    "status": "status",
    "cancelReason": "cancel_reason",
    "canceledAt": "canceled_at",
    "closedAt": "closed_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

COMPARISON_OPERATORS = {
    "eq": "=",
    "ne": "<>",
    "gt": ">",
    "ge": ">=",
    "lt": "<",
    "le": "<=",
}

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^']|'')*')
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<punct>[()\[\],])
      | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    )
    """,
    re.VERBOSE,
)


@dataclass
class FilterClause:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaginationOptions:
    offset: int
    limit: int


@dataclass
class ListQuery:
    filter: FilterClause | None
    order_by: list[tuple[str, str]]
    pagination: PaginationOptions


def _tokenize(expression: str) -> list[tuple[str, Any]]:
    tokens: list[tuple[str, Any]] = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if not match:
            raise WrongParameterError(
                f"$filter could not be parsed near: {expression[pos:]!r}"
            )
        pos = match.end()
        if match.group("string") is not None:
            tokens.append(("value", match.group("string")[1:-1].replace("''", "'")))
        elif match.group("number") is not None:
            text = match.group("number")
            tokens.append(("value", float(text) if "." in text else int(text)))
        elif match.group("punct") is not None:
            tokens.append(("punct", match.group("punct")))
        else:
            word = match.group("word")
            lowered = word.lower()
            if lowered in ("true", "false"):
                tokens.append(("value", lowered == "true"))
            elif lowered == "null":
                tokens.append(("value", None))
            elif lowered in ("and", "or", "in") or lowered in COMPARISON_OPERATORS:
                tokens.append(("keyword", lowered))
            else:
                tokens.append(("field", word))
    return tokens


class _FilterParser:
    """
    or_expr  := and_expr ('or' and_expr)*
    and_expr := term ('and' term)*
    term     := '(' or_expr ')' | field op value | field 'in' '[' value (',' value)* ']'
    """

    def __init__(self, expression: str):
        self.tokens = _tokenize(expression)
        self.pos = 0
        self.params: dict[str, Any] = {}

    def parse(self) -> FilterClause:
        sql = self._or_expr()
        if self.pos != len(self.tokens):
            raise WrongParameterError(
                f"$filter has unexpected token: {self.tokens[self.pos][1]!r}"
            )
        return FilterClause(sql=sql, params=self.params)

    def _peek(self) -> tuple[str, Any] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> tuple[str, Any]:
        token = self._peek()
        if token is None:
            raise WrongParameterError("$filter ended unexpectedly")
        self.pos += 1
        return token

    def _expect(self, kind: str, value: Any = None) -> tuple[str, Any]:
        token = self._next()
        if token[0] != kind or (value is not None and token[1] != value):
            raise WrongParameterError(
                f"$filter expected {value or kind} but found {token[1]!r}"
            )
        return token

    def _bind(self, value: Any) -> str:
        name = f"f{len(self.params)}"
        self.params[name] = value
        return f":{name}"

    def _or_expr(self) -> str:
        parts = [self._and_expr()]
        while self._peek() == ("keyword", "or"):
            self.pos += 1
            parts.append(self._and_expr())
        return parts[0] if len(parts) == 1 else "(" + " OR ".join(parts) + ")"

    def _and_expr(self) -> str:
        parts = [self._term()]
        while self._peek() == ("keyword", "and"):
            self.pos += 1
            parts.append(self._term())
        return parts[0] if len(parts) == 1 else "(" + " AND ".join(parts) + ")"

    def _term(self) -> str:
        if self._peek() == ("punct", "("):
            self.pos += 1
            # 複合式は _or_expr / _and_expr 側で括弧付きになる
            inner = self._or_expr()
            self._expect("punct", ")")
            return inner

        _, name = self._expect("field")
        column = FIELD_COLUMNS.get(name)
        if column is None:
            raise WrongParameterError(f"$filter field {name} is not supported")

        _, operator = self._expect("keyword")
        if operator == "in":
            self._expect("punct", "[")
            values = [self._expect("value")[1]]
            while self._peek() == ("punct", ","):
                self.pos += 1
                values.append(self._expect("value")[1])
            self._expect("punct", "]")
            for v in values:
                self._check_string(name, v)
            placeholders = ", ".join(self._bind(v) for v in values)
            return f"{column} IN ({placeholders})"

        if operator not in COMPARISON_OPERATORS:
            raise WrongParameterError(f"$filter operator {operator} is not supported")
        _, value = self._expect("value")
        if value is None:
            if operator == "eq":
                return f"{column} IS NULL"
            if operator == "ne":
                return f"{column} IS NOT NULL"
            raise WrongParameterError(f"$filter cannot compare {name} with null")
        self._check_string(name, value)
        return f"{column} {COMPARISON_OPERATORS[operator]} {self._bind(value)}"

    @staticmethod
    def _check_string(name: str, value: Any) -> None:
        # 対象の列はすべて文字列 (タイムスタンプも ISO 文字列で保存)
        if not isinstance(value, str):
            raise WrongParameterError(
                f"$filter value for {name} must be a quoted string, got {value!r}"
            )


def parse_filter(expression: str | None) -> FilterClause | None:
    if not expression or not expression.strip():
        return None
    return _FilterParser(expression).parse()


def parse_order_by(expression: str | None) -> list[tuple[str, str]]:
    """'createdAt desc,status' → [('created_at', 'DESC'), ('status', 'ASC')]"""
    if not expression or not expression.strip():
        return []
    order_by: list[tuple[str, str]] = []
    for part in expression.split(","):
        words = part.split()
        if not words or len(words) > 2:
            raise WrongParameterError(f"$orderby entry {part.strip()!r} is invalid")
        column = FIELD_COLUMNS.get(words[0])
        if column is None:
            raise WrongParameterError(f"$orderby field {words[0]} is not supported")
        direction = words[1].lower() if len(words) == 2 else "asc"
        if direction not in ("asc", "desc"):
            raise WrongParameterError(f"$orderby direction {words[1]} is invalid")
        order_by.append((column, direction.upper()))
    return order_by


def _parse_int(name: str, raw: str | None, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise WrongParameterError(f"{name} must be an integer") from None
    if value < 0:
        raise WrongParameterError(f"{name} must not be negative")
    return value


def parse_paginated_list_query(
    query: dict[str, str],
    pagination_configuration: PaginationConfiguration,
) -> ListQuery:
    """ページング必須の一覧クエリを解析する。"""
    if str(query.get("$paginate", "")).lower() == "false":
        raise WrongParameterError("pagination cannot be disabled for this list")

    limit = _parse_int(
        "$top", query.get("$top"), pagination_configuration.default_page_size
    )
    offset = _parse_int(
        "$skip", query.get("$skip"), pagination_configuration.default_offset
    )
    if limit < 1:
        raise WrongParameterError("$top must be at least 1")
    if limit > pagination_configuration.max_page_size:
        raise WrongParameterError(
            "$top must not exceed the maximum page size of "
            f"{pagination_configuration.max_page_size}"
        )

    return ListQuery(
        filter=parse_filter(query.get("$filter")),
        order_by=parse_order_by(query.get("$orderby")),
        pagination=PaginationOptions(offset=offset, limit=limit),
    )
