"""
SQL DDL → Schema.

MySQL / PostgreSQL / SQLite 계열의 CREATE TABLE 을 정규식 + 괄호 인식 분할로 읽는다.
해석할 수 없는 문장이나 정의는 건너뛰고 diagnostics 에 남긴다 (전체 파싱은 계속).
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from erd_studio.errors import SchemaError, StatementParseError
from erd_studio.model import Column, ColumnRef, Reference, Schema, Table
from erd_studio.parsers.base import ParseResult, Parser
from erd_studio.parsers.text import (
    Token,
    find_closing,
    split_qualified,
    split_statements,
    split_top_level,
    strip_comments,
    tokenize,
    unquote_identifier,
)

logger = logging.getLogger(__name__)

_IDENT = r'(?:`[^`]+`|"[^"]+"|\[[^\]]+\]|[\w$]+)'
_NAME = rf"(?P<name>{_IDENT}(?:\s*\.\s*{_IDENT})*)"

CREATE_TABLE_RE = re.compile(
    r"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:GLOBAL|LOCAL)\s+)?(?:TEMP(?:ORARY)?\s+|UNLOGGED\s+)?"
    rf"TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_NAME}\s*",
    re.IGNORECASE,
)
LOOSE_CREATE_TABLE_RE = re.compile(r"^CREATE\s+(?:\w+\s+)*TABLE\b")
ALTER_TABLE_RE = re.compile(
    rf"^\s*ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?{_NAME}\s+",
    re.IGNORECASE,
)
CREATE_INDEX_RE = re.compile(
    r"^\s*CREATE\s+(?P<unique>UNIQUE\s+)?(?:(?:NON)?CLUSTERED\s+)?INDEX\s+(?:CONCURRENTLY\s+)?"
    rf"(?:IF\s+NOT\s+EXISTS\s+)?(?:{_IDENT}\s+)?ON\s+(?:ONLY\s+)?{_NAME}\s*(?:USING\s+\w+\s*)?(?=\()",
    re.IGNORECASE,
)

# 컬럼 타입이 끝나고 제약조건이 시작되는 키워드
CONSTRAINT_WORDS = {
    "PRIMARY", "NOT", "NULL", "UNIQUE", "AUTO_INCREMENT", "AUTOINCREMENT", "IDENTITY",
    "GENERATED", "DEFAULT", "CHECK", "REFERENCES", "CONSTRAINT", "COMMENT", "COLLATE",
    "ON", "KEY", "CHARSET", "AS",
}
SERIAL_TYPES = {"SERIAL", "BIGSERIAL", "SMALLSERIAL", "SERIAL2", "SERIAL4", "SERIAL8"}
REF_ACTIONS = {
    "CASCADE": "cascade",
    "RESTRICT": "restrict",
    "SET NULL": "set null",
    "SET DEFAULT": "set default",
    "NO ACTION": "no action",
}


@dataclass
class _PendingRef:
    owning: ColumnRef
    table: str
    column: Optional[str]
    options: str
    fragment: str


def table_name_of(raw: str) -> str:
    # schema.table 이면 마지막 부분만 사용
    return split_qualified(raw)[-1]


def identifier_list(group: Token) -> List[str]:
    """(`a`, b(10) ASC) → ["a", "b"]"""
    names = []
    for part in split_top_level(group.inner):
        toks = tokenize(part)
        if toks:
            names.append(unquote_identifier(toks[0].text))
    return names


def _is_column_list(group: Token) -> bool:
    # VARCHAR(10), ENUM('a') 의 괄호는 컬럼 목록이 아니다
    items = split_top_level(group.inner)
    return bool(items) and all(not p[0].isdigit() and p[0] != "'" for p in items)


class _SqlSchemaBuilder:
    def __init__(self) -> None:
        self.result = ParseResult()
        self.pending: List[_PendingRef] = []

    @property
    def schema(self) -> Schema:
        return self.result.schema

    # ----- statements -----

    def statement(self, stmt: str) -> None:
        head = " ".join(stmt.lstrip()[:64].upper().split())
        mark = len(self.pending)
        try:
            if CREATE_TABLE_RE.match(stmt):
                self.create_table(stmt)
            elif LOOSE_CREATE_TABLE_RE.match(head):
                raise StatementParseError("Cannot read CREATE TABLE statement", stmt)
            elif head.startswith("ALTER TABLE"):
                self.alter_table(stmt)
            elif CREATE_INDEX_RE.match(stmt):
                self.create_index(stmt)
            else:
                logger.debug("Ignoring statement: %s", head)
        except (StatementParseError, SchemaError) as e:
            # 실패한 문장에서 나온 참조는 버린다
            del self.pending[mark:]
            self._fail(e, stmt)

    def _fail(self, e: Exception, fragment: str) -> None:
        self.result.error(str(e), getattr(e, "fragment", "") or fragment)

    def _definition(self, table: Table, fragment: str, tokens: List[Token]) -> None:
        mark = len(self.pending)
        try:
            if self._is_table_constraint(tokens):
                self.table_constraint(table, fragment, tokens)
            elif tokens:
                self.add_column(table, self.column_definition(table.name, fragment, tokens), fragment)
        except (StatementParseError, SchemaError) as e:
            del self.pending[mark:]
            self._fail(e, fragment)

    def create_table(self, stmt: str) -> None:
        m = CREATE_TABLE_RE.match(stmt)
        name = table_name_of(m.group("name"))
        if not stmt[m.end():].startswith("("):
            raise StatementParseError(f"CREATE TABLE {name} has no column list", stmt)
        open_idx = m.end()
        close_idx = find_closing(stmt, open_idx)
        if close_idx < 0:
            raise StatementParseError(f"Unbalanced parentheses in CREATE TABLE {name}", stmt)

        table = Table(name=name)
        deferred: List[Tuple[str, List[Token]]] = []
        for part in split_top_level(stmt[open_idx + 1:close_idx]):
            tokens = tokenize(part)
            if self._is_table_constraint(tokens):
                deferred.append((part, tokens))
            else:
                self._definition(table, part, tokens)

        # 테이블 수준 제약은 컬럼이 모두 등록된 뒤에 적용
        for part, tokens in deferred:
            self._definition(table, part, tokens)

        self.schema.add_table(table)
        logger.debug("Parsed table %s (%d columns)", table.name, len(table.columns))

    def alter_table(self, stmt: str) -> None:
        m = ALTER_TABLE_RE.match(stmt)
        if not m:
            raise StatementParseError("Cannot read ALTER TABLE target", stmt)
        name = table_name_of(m.group("name"))
        table = self.schema.get_table(name)
        if table is None:
            self.result.warning(f"ALTER TABLE on unknown table '{name}' ignored", stmt)
            return

        for action in split_top_level(stmt[m.end():]):
            tokens = tokenize(action)
            if not tokens or not tokens[0].is_keyword("ADD"):
                logger.debug("Ignoring ALTER TABLE action: %s", action)
                continue
            tokens = tokens[1:]
            if tokens and tokens[0].is_keyword("COLUMN"):
                tokens = tokens[1:]
                if tokens and tokens[0].is_keyword("IF"):
                    tokens = tokens[3:]
            self._definition(table, action, tokens)

    def create_index(self, stmt: str) -> None:
        m = CREATE_INDEX_RE.match(stmt)
        name = table_name_of(m.group("name"))
        close_idx = find_closing(stmt, m.end())
        if close_idx < 0:
            raise StatementParseError("Unbalanced parentheses in CREATE INDEX", stmt)
        columns = identifier_list(Token("group", stmt[m.end():close_idx + 1]))
        table = self.schema.get_table(name)
        if table is None:
            self.result.warning(f"CREATE INDEX on unknown table '{name}' ignored", stmt)
            return
        self._mark_index(table, columns, bool(m.group("unique")), stmt)

    # ----- definitions -----

    def _is_table_constraint(self, tokens: List[Token]) -> bool:
        if not tokens:
            return False
        first = tokens[0]
        if first.is_keyword("CONSTRAINT", "PRIMARY", "FOREIGN", "CHECK", "FULLTEXT", "SPATIAL", "EXCLUDE", "LIKE"):
            return True
        if first.is_keyword("UNIQUE", "KEY", "INDEX"):
            # `key VARCHAR(10)` 처럼 컬럼명이 키워드일 수도 있다
            rest = tokens[1:]
            if first.is_keyword("UNIQUE") and rest and rest[0].is_keyword("KEY", "INDEX"):
                rest = rest[1:]
            if rest and rest[0].kind == "group":
                return True
            return len(rest) > 1 and rest[0].kind == "word" and rest[1].kind == "group" and _is_column_list(rest[1])
        return False

    def column_definition(self, table_name: str, fragment: str, tokens: List[Token]) -> Column:
        if not tokens or tokens[0].kind != "word":
            raise StatementParseError("Column definition has no name", fragment)
        name = unquote_identifier(tokens[0].text)

        type_parts: List[str] = []
        i = 1
        while i < len(tokens):
            tok = tokens[i]
            if tok.kind == "word" and self._starts_constraint(tokens, i):
                break
            if tok.kind == "group":
                if not type_parts:
                    break
                type_parts[-1] += tok.text
            elif tok.kind == "word":
                type_parts.append(tok.text)
            else:
                break
            i += 1
        if not type_parts:
            raise StatementParseError(f"Column '{name}' has no type", fragment)

        col_type = " ".join(type_parts)
        col = Column(name=name, type=col_type)
        if type_parts[0].upper() in SERIAL_TYPES:
            col.is_auto_increment = True

        self._column_constraints(col, table_name, tokens, i, fragment)
        return col

    def _starts_constraint(self, tokens: List[Token], i: int) -> bool:
        word = tokens[i].upper
        if word in CONSTRAINT_WORDS:
            return True
        if word == "CHARACTER":
            return i + 1 < len(tokens) and tokens[i + 1].is_keyword("SET")
        return False

    def _column_constraints(self, col: Column, table_name: str, tokens: List[Token], i: int, fragment: str) -> None:
        n = len(tokens)
        while i < n:
            tok = tokens[i]
            word = tok.upper if tok.kind == "word" else ""
            nxt = tokens[i + 1] if i + 1 < n else None

            if word == "PRIMARY":
                col.is_primary_key = True
                i += 2 if nxt is not None and nxt.is_keyword("KEY") else 1
                if i < n and tokens[i].is_keyword("ASC", "DESC"):
                    i += 1
            elif word == "NOT" and nxt is not None and nxt.is_keyword("NULL"):
                col.is_not_null = True
                i += 2
            elif word == "UNIQUE":
                col.is_unique = True
                i += 2 if nxt is not None and nxt.is_keyword("KEY") else 1
            elif word in ("AUTO_INCREMENT", "AUTOINCREMENT"):
                col.is_auto_increment = True
                i += 1
            elif word == "IDENTITY":
                col.is_auto_increment = True
                i += 2 if nxt is not None and nxt.kind == "group" else 1
            elif word == "GENERATED":
                i = self._generated(col, tokens, i + 1)
            elif word == "DEFAULT":
                col.default_value, i = self._default_value(tokens, i + 1, fragment)
            elif word == "CHECK":
                if nxt is None or nxt.kind != "group":
                    raise StatementParseError(f"CHECK on column '{col.name}' has no expression", fragment)
                col.check_constraint = nxt.inner
                i += 2
            elif word == "REFERENCES":
                i = self._inline_reference(col, table_name, tokens, i + 1, fragment)
            elif word == "ON" and nxt is not None and nxt.is_keyword("UPDATE"):
                # MySQL: ON UPDATE CURRENT_TIMESTAMP
                _, i = self._default_value(tokens, i + 2, fragment)
            elif word in ("CONSTRAINT", "COMMENT", "COLLATE", "CHARSET"):
                i += 2
            elif word == "CHARACTER":
                i += 3
            else:
                logger.debug("Ignoring column token %r in %s.%s", tok.text, table_name, col.name)
                i += 1

    def _generated(self, col: Column, tokens: List[Token], i: int) -> int:
        while i < len(tokens) and tokens[i].is_keyword("ALWAYS", "BY", "DEFAULT", "AS"):
            i += 1
        if i < len(tokens) and tokens[i].is_keyword("IDENTITY"):
            col.is_auto_increment = True
            i += 1
        if i < len(tokens) and tokens[i].kind == "group":
            i += 1
        return i

    def _default_value(self, tokens: List[Token], i: int, fragment: str) -> Tuple[str, int]:
        if i >= len(tokens):
            raise StatementParseError("DEFAULT without a value", fragment)
        value = tokens[i].text
        i += 1
        if i < len(tokens) and tokens[i].kind == "group" and tokens[i].glued:
            value += tokens[i].text
            i += 1
        # Postgres 캐스트: 'x'::text
        while i < len(tokens) and tokens[i].kind == "word" and tokens[i].text.startswith("::"):
            value += tokens[i].text
            i += 1
        return value, i

    def _read_target(self, tokens: List[Token], i: int, fragment: str) -> Tuple[str, List[str], int]:
        if i >= len(tokens) or tokens[i].kind != "word":
            raise StatementParseError("REFERENCES without a table", fragment)
        table = table_name_of(tokens[i].text)
        i += 1
        columns: List[str] = []
        if i < len(tokens) and tokens[i].kind == "group":
            columns = identifier_list(tokens[i])
            i += 1
        return table, columns, i

    def _read_actions(self, tokens: List[Token], i: int) -> Tuple[str, int]:
        options = []
        n = len(tokens)
        while i < n:
            tok = tokens[i]
            if tok.is_keyword("MATCH") and i + 1 < n:
                i += 2
                continue
            if tok.is_keyword("DEFERRABLE", "INITIALLY", "DEFERRED", "IMMEDIATE"):
                i += 1
                continue
            if not (tok.is_keyword("ON") and i + 1 < n and tokens[i + 1].is_keyword("DELETE", "UPDATE")):
                break
            event = tokens[i + 1].upper.lower()
            i += 2
            if i < n and tokens[i].is_keyword("SET", "NO") and i + 1 < n:
                action = f"{tokens[i].upper} {tokens[i + 1].upper}"
                i += 2
            elif i < n:
                action = tokens[i].upper
                i += 1
            else:
                break
            options.append(f"{event}: {REF_ACTIONS.get(action, action.lower())}")
        return ", ".join(options), i

    def _inline_reference(self, col: Column, table_name: str, tokens: List[Token], i: int, fragment: str) -> int:
        ref_table, ref_columns, i = self._read_target(tokens, i, fragment)
        options, i = self._read_actions(tokens, i)
        self.pending.append(_PendingRef(
            owning=ColumnRef(table_name, col.name),
            table=ref_table,
            column=ref_columns[0] if ref_columns else None,
            options=options,
            fragment=fragment,
        ))
        return i

    def table_constraint(self, table: Table, fragment: str, tokens: List[Token]) -> None:
        if tokens and tokens[0].is_keyword("CONSTRAINT"):
            tokens = tokens[2:]
        if not tokens:
            raise StatementParseError("Empty constraint", fragment)
        first = tokens[0]
        group = next((t for t in tokens if t.kind == "group"), None)

        if first.is_keyword("PRIMARY"):
            if group is None:
                raise StatementParseError("PRIMARY KEY without columns", fragment)
            self._mark_primary_key(table, identifier_list(group), fragment)
        elif first.is_keyword("FOREIGN"):
            self._foreign_key(table, tokens, fragment)
        elif first.is_keyword("UNIQUE", "KEY", "INDEX"):
            if group is None:
                raise StatementParseError("Index without columns", fragment)
            self._mark_index(table, identifier_list(group), first.is_keyword("UNIQUE"), fragment)
        else:
            logger.debug("Ignoring table constraint in %s: %s", table.name, fragment)

    def _foreign_key(self, table: Table, tokens: List[Token], fragment: str) -> None:
        idx = next((k for k, t in enumerate(tokens) if t.is_keyword("REFERENCES")), None)
        group = next((t for t in tokens[:idx] if t.kind == "group"), None) if idx is not None else None
        if idx is None or group is None:
            raise StatementParseError("FOREIGN KEY needs (columns) REFERENCES table(columns)", fragment)
        owning_columns = identifier_list(group)
        ref_table, ref_columns, i = self._read_target(tokens, idx + 1, fragment)
        options, _ = self._read_actions(tokens, i)

        if ref_columns and len(ref_columns) != len(owning_columns):
            raise StatementParseError("FOREIGN KEY column counts do not match", fragment)
        if len(owning_columns) > 1:
            self.result.warning(
                f"Composite foreign key on {table.name} stored as {len(owning_columns)} single-column references",
                fragment,
            )
        for k, column in enumerate(owning_columns):
            owning = table.get_column(column)
            self.pending.append(_PendingRef(
                owning=ColumnRef(table.name, owning.name if owning else column),
                table=ref_table,
                column=ref_columns[k] if ref_columns else None,
                options=options,
                fragment=fragment,
            ))

    def _mark_primary_key(self, table: Table, columns: List[str], fragment: str) -> None:
        if not columns:
            raise StatementParseError("PRIMARY KEY without columns", fragment)
        if len(columns) > 1:
            self.result.warning(
                f"Composite primary key on {table.name}: only '{columns[0]}' is kept as primary key",
                fragment,
            )
        current = table.primary_key
        if current is not None and current.name.casefold() != columns[0].casefold():
            self.result.warning(
                f"Table {table.name} already has primary key '{current.name}'; '{columns[0]}' ignored",
                fragment,
            )
            return
        if not table.has_column(columns[0]):
            self.result.error(f"PRIMARY KEY column '{columns[0]}' not found in {table.name}", fragment)
            return
        table.set_primary_key(columns[0])

    def _mark_index(self, table: Table, columns: List[str], unique: bool, fragment: str) -> None:
        if len(columns) != 1:
            self.result.warning(f"Multi-column index on {table.name} is not supported; ignored", fragment)
            return
        col = table.get_column(columns[0])
        if col is None:
            self.result.error(f"Index column '{columns[0]}' not found in {table.name}", fragment)
            return
        if unique:
            col.is_unique = True
        else:
            col.is_indexed = True

    def add_column(self, table: Table, col: Column, fragment: str) -> None:
        if col.is_primary_key and table.primary_key is not None:
            self.result.warning(
                f"Table {table.name} already has primary key '{table.primary_key.name}'; "
                f"'{col.name}' kept as a regular column",
                fragment,
            )
            col.is_primary_key = False
        table.add_column(col)

    # ----- references -----

    def finish(self) -> ParseResult:
        for p in self.pending:
            ref_table = self.schema.get_table(p.table)
            column = p.column
            if column is None:
                # REFERENCES users 처럼 컬럼 생략 → 대상 테이블의 PK
                pk = ref_table.primary_key if ref_table else None
                if pk is None:
                    self.result.error(
                        f"Cannot determine referenced column of {p.table} for {p.owning}", p.fragment
                    )
                    continue
                column = pk.name
            ref = Reference.foreign_key(
                self._canonical(p.owning),
                self._canonical(ColumnRef(p.table, column)),
                p.options,
            )
            self.schema.add_reference(ref)

        for ref in self.schema.unresolved_references():
            self.result.warning(f"Unresolved reference {ref}")
        return self.result

    def _canonical(self, ref: ColumnRef) -> ColumnRef:
        table = self.schema.get_table(ref.table)
        if table is None:
            return ref
        col = table.get_column(ref.column)
        return ColumnRef(table.name, col.name if col else ref.column)


class SqlDdlParser(Parser):
    suffixes = (".sql", ".ddl")

    def parse(self, text: str) -> ParseResult:
        builder = _SqlSchemaBuilder()
        for stmt in split_statements(strip_comments(text or "")):
            builder.statement(stmt)
        result = builder.finish()
        logger.info(
            "SQL parsed: %d tables, %d references, %d diagnostics",
            len(result.schema.tables), len(result.schema.references), len(result.diagnostics),
        )
        return result


def parse_sql(text: str) -> ParseResult:
    return SqlDdlParser().parse(text)
