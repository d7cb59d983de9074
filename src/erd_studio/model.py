from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Iterator, List, NamedTuple, Optional, Tuple

from erd_studio.errors import DuplicateColumnError, DuplicateTableError, SchemaError

DIRECTIONS = (">", "<")


def same_name(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


@dataclass
class Column:
    name: str
    type: str
    is_primary_key: bool = False
    is_not_null: bool = False
    is_unique: bool = False
    is_auto_increment: bool = False
    is_indexed: bool = False
    default_value: Optional[str] = None
    check_constraint: Optional[str] = None

    def __post_init__(self) -> None:
        self.name = (self.name or "").strip()
        self.type = (self.type or "").strip()
        if not self.name:
            raise SchemaError("Column name must not be empty")
        if not self.type:
            raise SchemaError(f"Column '{self.name}' has no type")


COLUMN_FIELDS = frozenset(f.name for f in fields(Column))


@dataclass
class Table:
    name: str
    columns: List[Column] = field(default_factory=list)
    # 에디터가 관리하는 좌표. 변환 로직에서는 쓰지 않는다.
    position: Optional[Tuple[float, float]] = None

    def __post_init__(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise SchemaError("Table name must not be empty")
        seen: set[str] = set()
        for c in self.columns:
            key = c.name.casefold()
            if key in seen:
                raise DuplicateColumnError(self.name, c.name)
            seen.add(key)
        pks = [c.name for c in self.columns if c.is_primary_key]
        if len(pks) > 1:
            raise SchemaError(f"Table '{self.name}' has more than one primary key: {', '.join(pks)}")

    def get_column(self, name: str) -> Optional[Column]:
        for c in self.columns:
            if same_name(c.name, name):
                return c
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    @property
    def primary_key(self) -> Optional[Column]:
        # 불변식이 깨진 상태(외부에서 플래그를 직접 바꾼 경우)에서도 첫 번째만 인정
        for c in self.columns:
            if c.is_primary_key:
                return c
        return None

    def add_column(self, column: Column) -> Column:
        if self.has_column(column.name):
            raise DuplicateColumnError(self.name, column.name)
        if column.is_primary_key:
            self.clear_primary_key()
        self.columns.append(column)
        return column

    def update_column(self, name: str, /, **changes) -> Column:
        """컬럼 속성 변경. 실패하면 테이블은 그대로 남는다."""
        current = self.get_column(name)
        if current is None:
            raise SchemaError(f"Column '{name}' does not exist in table '{self.name}'")
        unknown = set(changes) - COLUMN_FIELDS
        if unknown:
            raise SchemaError(f"Unknown column attribute(s): {', '.join(sorted(unknown))}")

        updated = replace(current, **changes)
        clash = self.get_column(updated.name)
        if clash is not None and clash is not current:
            raise DuplicateColumnError(self.name, updated.name)

        if updated.is_primary_key:
            for c in self.columns:
                if c is not current:
                    c.is_primary_key = False
        self.columns[self.columns.index(current)] = updated
        return updated

    def remove_column(self, name: str) -> Column:
        col = self.get_column(name)
        if col is None:
            raise SchemaError(f"Column '{name}' does not exist in table '{self.name}'")
        self.columns.remove(col)
        return col

    def set_primary_key(self, name: str) -> Column:
        return self.update_column(name, is_primary_key=True)

    def clear_primary_key(self) -> None:
        for c in self.columns:
            c.is_primary_key = False


class ColumnRef(NamedTuple):
    """(table, column) 쌍. 구분자 문자열로 인코딩하지 않는다."""
    table: str
    column: str

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class Reference:
    """
    DBML 표기 그대로의 관계: `source_table.source_column <direction> target_table.target_column`.

    - direction ">" : source 컬럼이 FK를 가지고 target 컬럼을 가리킨다 (many-to-one)
    - direction "<" : target 컬럼이 FK를 가지고 source 컬럼을 가리킨다

    화살표를 해석하지 않고 쓰려면 owning(FK를 가진 쪽) / referenced(참조되는 쪽)를 사용한다.
    """
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    direction: str = ">"
    options: str = ""

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            raise SchemaError(f"Unsupported relationship direction: {self.direction!r}")
        for label, value in (
            ("source table", self.source_table),
            ("source column", self.source_column),
            ("target table", self.target_table),
            ("target column", self.target_column),
        ):
            if not value or not value.strip():
                raise SchemaError(f"Reference {label} must not be empty")

    @property
    def source(self) -> ColumnRef:
        return ColumnRef(self.source_table, self.source_column)

    @property
    def target(self) -> ColumnRef:
        return ColumnRef(self.target_table, self.target_column)

    @property
    def owning(self) -> ColumnRef:
        return self.source if self.direction == ">" else self.target

    @property
    def referenced(self) -> ColumnRef:
        return self.target if self.direction == ">" else self.source

    @classmethod
    def foreign_key(cls, owning: ColumnRef, referenced: ColumnRef, options: str = "") -> "Reference":
        return cls(owning.table, owning.column, referenced.table, referenced.column, ">", options)

    def __str__(self) -> str:
        return f"{self.source} {self.direction} {self.target}"


@dataclass
class Schema:
    tables: List[Table] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for t in self.tables:
            key = t.name.casefold()
            if key in seen:
                raise DuplicateTableError(t.name)
            seen.add(key)

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables)

    def get_table(self, name: str) -> Optional[Table]:
        for t in self.tables:
            if same_name(t.name, name):
                return t
        return None

    def add_table(self, table: Table) -> Table:
        if self.get_table(table.name) is not None:
            raise DuplicateTableError(table.name)
        self.tables.append(table)
        return table

    def ensure_table(self, name: str) -> Table:
        return self.get_table(name) or self.add_table(Table(name=name))

    def remove_table(self, name: str) -> Table:
        table = self.get_table(name)
        if table is None:
            raise SchemaError(f"Table '{name}' does not exist")
        self.tables.remove(table)
        self.references = [
            r for r in self.references
            if not (same_name(r.source_table, table.name) or same_name(r.target_table, table.name))
        ]
        return table

    def add_reference(self, ref: Reference) -> Reference:
        if ref not in self.references:
            self.references.append(ref)
        return ref

    def find_column(self, ref: ColumnRef) -> Optional[Column]:
        table = self.get_table(ref.table)
        return table.get_column(ref.column) if table else None

    def resolves(self, ref: Reference) -> bool:
        return self.find_column(ref.source) is not None and self.find_column(ref.target) is not None

    def resolved_references(self) -> List[Reference]:
        return [r for r in self.references if self.resolves(r)]

    def unresolved_references(self) -> List[Reference]:
        return [r for r in self.references if not self.resolves(r)]
