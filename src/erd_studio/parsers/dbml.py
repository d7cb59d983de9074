"""
DBML → Schema.

Table 블록과 Ref 선언을 서로 독립적으로 찾는다 (텍스트 안의 순서는 상관 없음).
존재하지 않는 테이블/컬럼을 가리키는 Ref 도 그대로 남기고 경고만 한다.
걸러낼지는 호출하는 쪽(normalize_schema)이 정한다.
"""
from __future__ import annotations
import logging
import re
from typing import Dict, List, Optional, Tuple

from erd_studio.errors import SchemaError, StatementParseError
from erd_studio.model import Column, ColumnRef, Reference, Table
from erd_studio.parsers.base import ParseResult, Parser
from erd_studio.parsers.text import (
    QUOTES,
    find_closing,
    find_top_level,
    scan_quoted,
    split_qualified,
    split_top_level,
    strip_comments,
    tokenize,
    unquote_identifier,
)

logger = logging.getLogger(__name__)

TABLE_HEAD_RE = re.compile(r"^[ \t]*Table[ \t]+(?P<head>[^{\n]*?)\s*\{", re.IGNORECASE | re.MULTILINE)
REF_SHORT_RE = re.compile(
    r"^[ \t]*Ref(?:[ \t]+[^:{\n]*?)?[ \t]*:(?P<body>[^\n]*)$", re.IGNORECASE | re.MULTILINE
)
REF_LONG_RE = re.compile(r"^[ \t]*Ref(?:[ \t]+[^:{\n]*?)?[ \t]*\{", re.IGNORECASE | re.MULTILINE)
INDEXES_RE = re.compile(r"^indexes\s*\{", re.IGNORECASE)
NOTE_RE = re.compile(r"^note\s*[:{]", re.IGNORECASE)


def _strip_backticks(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == "`":
        return value[1:-1].strip()
    return value


def trailing_settings(line: str) -> Tuple[str, Optional[str]]:
    """`name type [a, b]` → ("name type", "a, b"). `text[]` 같은 타입 안의 대괄호는 건드리지 않는다."""
    line = line.strip()
    if not line.endswith("]"):
        return line, None
    pos = find_top_level(line, "[")
    while pos >= 0:
        close = find_closing(line, pos)
        # 앞 글자에 붙은 [ 는 타입의 일부 (text[])
        if close == len(line) - 1 and (pos == 0 or line[pos - 1].isspace()):
            return line[:pos].strip(), line[pos + 1:close].strip()
        if close < 0:
            break
        pos = find_top_level(line, "[", close + 1)
    return line, None


def find_operator(text: str) -> Tuple[int, str]:
    """따옴표 밖에서 처음 나오는 관계 연산자 (<>, <, >, -)."""
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            i = scan_quoted(text, i)
            continue
        if text.startswith("<>", i):
            return i, "<>"
        if ch in "<>-":
            return i, ch
        i += 1
    return -1, ""


def endpoint(text: str) -> ColumnRef:
    text = text.strip()
    if text.startswith("("):
        raise StatementParseError("Composite relationship endpoints are not supported", text)
    parts = split_qualified(text)
    if len(parts) < 2 or not all(parts):
        raise StatementParseError(f"Relationship endpoint must be table.column: {text!r}", text)
    return ColumnRef(parts[-2], parts[-1])


class _DbmlSchemaBuilder:
    def __init__(self, text: str) -> None:
        self.text = text
        self.result = ParseResult()
        self.aliases: Dict[str, str] = {}
        self.raw_refs: List[Reference] = []

    def build(self) -> ParseResult:
        remaining = self._tables()
        self._refs(remaining)

        schema = self.result.schema
        for ref in self.raw_refs:
            schema.add_reference(self._canonical(ref))
        for ref in schema.unresolved_references():
            self.result.warning(f"Unresolved reference {ref}")
        return self.result

    # ----- Table 블록 -----

    def _tables(self) -> str:
        """Table 블록을 읽고, 블록을 제외한 나머지 텍스트를 돌려준다 (Ref 검색용)."""
        text = self.text
        rest: List[str] = []
        pos = 0
        while True:
            m = TABLE_HEAD_RE.search(text, pos)
            if not m:
                break
            brace = m.end() - 1
            close = find_closing(text, brace)
            rest.append(text[pos:m.start()])
            if close < 0:
                self.result.error("Unterminated Table block", text[m.start():m.end()])
                pos = m.end()
                continue
            try:
                self._table(m.group("head"), text[brace + 1:close])
            except (StatementParseError, SchemaError) as e:
                self.result.error(str(e), getattr(e, "fragment", "") or text[m.start():close + 1])
            pos = close + 1
        rest.append(text[pos:])
        return "".join(rest)

    def _table(self, head: str, body: str) -> None:
        settings_at = find_top_level(head, "[")
        if settings_at >= 0:
            head = head[:settings_at]
        tokens = tokenize(head)
        if not tokens:
            raise StatementParseError("Table without a name", head)
        name = split_qualified(tokens[0].text)[-1]
        table = Table(name=name)
        if len(tokens) >= 3 and tokens[1].is_keyword("AS"):
            self.aliases[unquote_identifier(tokens[2].text).casefold()] = name

        for item in split_top_level(body, "\n"):
            item = item.strip()
            if not item:
                continue
            if INDEXES_RE.match(item):
                self._indexes(table, item[item.index("{") + 1:item.rindex("}")] if item.endswith("}") else "")
            elif NOTE_RE.match(item):
                continue
            else:
                try:
                    self._column(table, item)
                except (StatementParseError, SchemaError) as e:
                    self.result.error(str(e), getattr(e, "fragment", "") or item)

        self.result.schema.add_table(table)
        logger.debug("Parsed DBML table %s (%d columns)", table.name, len(table.columns))

    def _column(self, table: Table, line: str) -> None:
        head, settings = trailing_settings(line)
        tokens = tokenize(head)
        if len(tokens) < 2:
            raise StatementParseError("Column line needs a name and a type", line)
        name = unquote_identifier(tokens[0].text)
        col_type = head[len(tokens[0].text):].strip()
        if col_type.startswith('"') and col_type.endswith('"'):
            col_type = col_type[1:-1]
        col = Column(name=name, type=col_type)

        inline_refs: List[Tuple[str, str]] = []
        for setting in split_top_level(settings or ""):
            key, _, value = setting.partition(":")
            key = " ".join(key.split()).lower()
            if key in ("pk", "primary key"):
                col.is_primary_key = True
            elif key == "not null":
                col.is_not_null = True
            elif key == "null":
                col.is_not_null = False
            elif key == "unique":
                col.is_unique = True
            elif key == "increment":
                col.is_auto_increment = True
            elif key == "index":
                col.is_indexed = True
            elif key == "default":
                col.default_value = _strip_backticks(value)
            elif key == "check":
                col.check_constraint = _strip_backticks(value)
            elif key == "ref":
                inline_refs.append((value.strip(), setting))
            elif key == "note":
                continue
            else:
                self.result.warning(f"Unknown column setting '{key}' on {table.name}.{name}", setting)

        if col.is_primary_key and table.primary_key is not None:
            self.result.warning(
                f"Table {table.name} already has primary key '{table.primary_key.name}'; "
                f"'{col.name}' kept as a regular column",
                line,
            )
            col.is_primary_key = False
        table.add_column(col)

        for value, fragment in inline_refs:
            op_at, op = find_operator(value)
            if op_at != 0:
                self.result.error("Inline ref needs a direction (ref: > table.column)", fragment)
                continue
            self._relation(ColumnRef(table.name, col.name), op, value[len(op):], "", fragment)

    def _indexes(self, table: Table, body: str) -> None:
        for item in split_top_level(body, "\n"):
            item = item.strip()
            if not item:
                continue
            target, settings = trailing_settings(item)
            if target.startswith("(") or target.startswith("`"):
                self.result.warning(f"Composite/expression index on {table.name} is not supported; ignored", item)
                continue
            col = table.get_column(unquote_identifier(target))
            if col is None:
                self.result.error(f"Index column '{target}' not found in {table.name}", item)
                continue
            flags = {s.partition(":")[0].strip().lower() for s in split_top_level(settings or "")}
            if "pk" in flags:
                table.set_primary_key(col.name)
            elif "unique" in flags:
                col.is_unique = True
            else:
                col.is_indexed = True

    # ----- Ref -----

    def _refs(self, text: str) -> None:
        for m in REF_SHORT_RE.finditer(text):
            self._ref_line(m.group("body"))
        for m in REF_LONG_RE.finditer(text):
            brace = m.end() - 1
            close = find_closing(text, brace)
            if close < 0:
                self.result.error("Unterminated Ref block", m.group(0))
                continue
            for line in text[brace + 1:close].splitlines():
                if line.strip():
                    self._ref_line(line)

    def _ref_line(self, line: str) -> None:
        body, options = trailing_settings(line)
        op_at, op = find_operator(body)
        if op_at < 0:
            self.result.error("Relationship has no direction operator", line.strip())
            return
        try:
            left = endpoint(body[:op_at])
        except StatementParseError as e:
            self.result.error(str(e), line.strip())
            return
        self._relation(left, op, body[op_at + len(op):], options or "", line.strip())

    def _relation(self, left: ColumnRef, op: str, right_text: str, options: str, fragment: str) -> None:
        if op not in (">", "<"):
            self.result.warning(f"Relationship type '{op}' is not supported; skipped", fragment)
            return
        try:
            right = endpoint(right_text)
        except StatementParseError as e:
            self.result.error(str(e), fragment)
            return
        ref = Reference(left.table, left.column, right.table, right.column, op, options)
        self.raw_refs.append(ref)

    def _canonical(self, ref: Reference) -> Reference:
        def fix(end: ColumnRef) -> ColumnRef:
            table_name = self.aliases.get(end.table.casefold(), end.table)
            table = self.result.schema.get_table(table_name)
            if table is None:
                return ColumnRef(table_name, end.column)
            col = table.get_column(end.column)
            return ColumnRef(table.name, col.name if col else end.column)

        s, t = fix(ref.source), fix(ref.target)
        return Reference(s.table, s.column, t.table, t.column, ref.direction, ref.options)


class DbmlParser(Parser):
    suffixes = (".dbml",)

    def parse(self, text: str) -> ParseResult:
        cleaned = strip_comments(text or "", line_comments=("//",), hash_comments=False)
        result = _DbmlSchemaBuilder(cleaned).build()
        logger.info(
            "DBML parsed: %d tables, %d references, %d diagnostics",
            len(result.schema.tables), len(result.schema.references), len(result.diagnostics),
        )
        return result


def parse_dbml(text: str) -> ParseResult:
    return DbmlParser().parse(text)
