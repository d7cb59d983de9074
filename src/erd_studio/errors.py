from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Optional

Severity = Literal["error", "warning"]


class SchemaError(ValueError):
    """모델 불변식 위반 (잘못된 이름, 중복 등)."""


class DuplicateColumnError(SchemaError):
    def __init__(self, table: str, column: str):
        super().__init__(f"Column '{column}' already exists in table '{table}'")
        self.table = table
        self.column = column


class DuplicateTableError(SchemaError):
    def __init__(self, table: str):
        super().__init__(f"Table '{table}' already exists")
        self.table = table


class InputError(Exception):
    """변환을 시작할 수 없는 입력 (빈 파일, 읽기 실패, 텍스트 아님 등)."""


class StatementParseError(Exception):
    """한 문장/정의를 해석하지 못함. 파서 루프에서 Diagnostic으로 바뀐다."""

    def __init__(self, message: str, fragment: str = ""):
        super().__init__(message)
        self.fragment = fragment


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    fragment: Optional[str] = None

    def __str__(self) -> str:
        if self.fragment:
            return f"{self.severity}: {self.message} [{_shorten(self.fragment)}]"
        return f"{self.severity}: {self.message}"


def _shorten(text: str, limit: int = 80) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."


def has_errors(diagnostics: list[Diagnostic]) -> bool:
    return any(d.severity == "error" for d in diagnostics)
