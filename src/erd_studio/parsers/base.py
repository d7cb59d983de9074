from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from erd_studio.errors import Diagnostic, has_errors
from erd_studio.model import Schema


@dataclass
class ParseResult:
    schema: Schema = field(default_factory=Schema)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not has_errors(self.diagnostics)

    def error(self, message: str, fragment: str | None = None) -> None:
        self.diagnostics.append(Diagnostic("error", message, fragment))

    def warning(self, message: str, fragment: str | None = None) -> None:
        self.diagnostics.append(Diagnostic("warning", message, fragment))


class Parser(ABC):
    suffixes: tuple[str, ...] = ()

    def can_parse(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    @abstractmethod
    def parse(self, text: str) -> ParseResult: ...
