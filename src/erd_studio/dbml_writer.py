from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import List, Optional

from erd_studio.errors import Diagnostic
from erd_studio.model import Column, Schema
from erd_studio.parsers.text import split_top_level

PLAIN_NAME_RE = re.compile(r"^[A-Za-z_][\w$]*$")

logger = logging.getLogger(__name__)


def dbml_name(name: str) -> str:
    return name if PLAIN_NAME_RE.match(name) else f'"{name}"'


def dbml_type(col_type: str) -> str:
    # 괄호 밖에 공백이 있는 타입(double precision 등)은 따옴표로 감싼다
    return f'"{col_type}"' if len(split_top_level(col_type, " ")) > 1 else col_type


def col_settings(c: Column, is_pk: bool) -> str:
    # 순서 고정: pk, not null, unique, increment, default, index, check
    settings = []
    if is_pk:
        settings.append("pk")
    if c.is_not_null:
        settings.append("not null")
    if c.is_unique:
        settings.append("unique")
    if c.is_auto_increment:
        settings.append("increment")
    if c.default_value:
        settings.append(f"default: {c.default_value}")
    # PK는 이미 인덱스가 있으므로 생략
    if c.is_indexed and not is_pk:
        settings.append("index")
    if c.check_constraint:
        settings.append(f"check: {c.check_constraint}")
    return f" [{', '.join(settings)}]" if settings else ""


def _report(diagnostics: Optional[List[Diagnostic]], msg: str) -> None:
    logger.warning(msg)
    if diagnostics is not None:
        diagnostics.append(Diagnostic("warning", msg))


def to_dbml(schema: Schema, diagnostics: Optional[List[Diagnostic]] = None) -> str:
    blocks: list[str] = []

    # Tables (모델 순서 그대로)
    for table in schema.tables:
        pk = table.primary_key
        lines = [f"Table {dbml_name(table.name)} {{"]
        for col in table.columns:
            if col.is_primary_key and col is not pk:
                _report(diagnostics, f"{table.name}.{col.name}: second primary key written as a regular column")
            lines.append(f"  {dbml_name(col.name)} {dbml_type(col.type)}{col_settings(col, col is pk)}")
        lines.append("}\n")
        blocks.append("\n".join(lines))

    # Refs
    refs: list[str] = []
    for r in schema.references:
        if not schema.resolves(r):
            _report(diagnostics, f"Skipping unresolved reference {r}")
            continue
        line = (
            f"Ref: {dbml_name(r.source_table)}.{dbml_name(r.source_column)} {r.direction} "
            f"{dbml_name(r.target_table)}.{dbml_name(r.target_column)}"
        )
        if r.options.strip():
            line += f" [{r.options.strip()}]"
        refs.append(line)
    if refs:
        blocks.append("\n".join(refs) + "\n")

    return "\n".join(blocks)


def write_dbml(schema: Schema, out_path: Path, diagnostics: Optional[List[Diagnostic]] = None) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(to_dbml(schema, diagnostics), encoding="utf-8")
    return out_path
