"""Schema → SQL DDL (CREATE TABLE / CREATE INDEX / ALTER TABLE ... FOREIGN KEY)."""
from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import List, Optional

from erd_studio.errors import Diagnostic
from erd_studio.model import Column, Reference, Schema, Table
from erd_studio.parsers.text import QUOTES, scan_quoted, split_top_level

logger = logging.getLogger(__name__)

PLAIN_NAME_RE = re.compile(r"^[A-Za-z_][\w$]*$")
REF_EVENTS = {"delete": "ON DELETE", "update": "ON UPDATE"}


def sql_name(name: str) -> str:
    return name if PLAIN_NAME_RE.match(name) else f'"{name}"'


def sql_type(col_type: str) -> str:
    """타입은 대문자로. 단 ENUM('a','b') 같은 따옴표 안 값은 그대로 둔다."""
    out: list[str] = []
    i = 0
    while i < len(col_type):
        if col_type[i] in QUOTES:
            end = scan_quoted(col_type, i)
            out.append(col_type[i:end])
            i = end
        else:
            out.append(col_type[i].upper())
            i += 1
    return "".join(out)


def column_sql(c: Column, is_pk: bool) -> str:
    parts = [sql_name(c.name), sql_type(c.type)]
    if c.is_not_null:
        parts.append("NOT NULL")
    if c.is_unique and not is_pk:
        parts.append("UNIQUE")
    if is_pk:
        parts.append("PRIMARY KEY")
    if c.is_auto_increment:
        parts.append("AUTO_INCREMENT")
    if c.default_value:
        parts.append(f"DEFAULT {c.default_value}")
    if c.check_constraint:
        parts.append(f"CHECK ({c.check_constraint})")
    return " ".join(parts)


def referential_actions(options: str) -> str:
    """'delete: cascade, update: set null' → ' ON DELETE CASCADE ON UPDATE SET NULL'"""
    clauses = []
    for opt in split_top_level(options or ""):
        key, _, value = opt.partition(":")
        event = REF_EVENTS.get(key.strip().lower())
        if event and value.strip():
            clauses.append(f"{event} {value.strip().upper()}")
    return "".join(f" {c}" for c in clauses)


def foreign_key_sql(r: Reference) -> str:
    # FK는 owning 쪽 테이블에 건다 (">" 이면 source, "<" 이면 target)
    owning, referenced = r.owning, r.referenced
    return (
        f"ALTER TABLE {sql_name(owning.table)} "
        f"ADD CONSTRAINT {sql_name(f'fk_{owning.table}_{owning.column}')} "
        f"FOREIGN KEY ({sql_name(owning.column)}) "
        f"REFERENCES {sql_name(referenced.table)}({sql_name(referenced.column)})"
        f"{referential_actions(r.options)};"
    )


def _report(diagnostics: Optional[List[Diagnostic]], msg: str) -> None:
    logger.warning(msg)
    if diagnostics is not None:
        diagnostics.append(Diagnostic("warning", msg))


def table_sql(table: Table, diagnostics: Optional[List[Diagnostic]] = None) -> str:
    pk = table.primary_key
    defs = []
    for col in table.columns:
        if col.is_primary_key and col is not pk:
            _report(
                diagnostics,
                f"{table.name}.{col.name}: only one PRIMARY KEY per table; '{pk.name}' kept",
            )
        defs.append(f"  {column_sql(col, col is pk)}")
    if not defs:
        _report(diagnostics, f"Table {table.name} has no columns")

    lines = [f"CREATE TABLE {sql_name(table.name)} ("]
    if defs:
        lines.append(",\n".join(defs))
    lines.append(");\n")

    indexes = [
        f"CREATE INDEX {sql_name(f'idx_{table.name}_{c.name}')} ON {sql_name(table.name)}({sql_name(c.name)});"
        for c in table.columns
        if c.is_indexed and c is not pk
    ]
    if indexes:
        lines.extend(indexes)
        lines.append("")
    return "\n".join(lines)


def to_sql(schema: Schema, diagnostics: Optional[List[Diagnostic]] = None) -> str:
    chunks = [table_sql(t, diagnostics) for t in schema.tables]

    fks = []
    for r in schema.references:
        if not schema.resolves(r):
            _report(diagnostics, f"Skipping unresolved reference {r}")
            continue
        fks.append(foreign_key_sql(r))
    if fks:
        chunks.append("\n".join(fks) + "\n")

    return "\n".join(chunks)


def write_sql(schema: Schema, out_path: Path, diagnostics: Optional[List[Diagnostic]] = None) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(to_sql(schema, diagnostics), encoding="utf-8")
    return out_path
