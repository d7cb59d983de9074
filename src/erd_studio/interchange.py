"""에디터와 주고받는 JSON 형태 (camelCase). 페이지 간 스키마 전달에 쓴다."""
from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from erd_studio.errors import InputError, SchemaError
from erd_studio.model import Column, Reference, Schema, Table


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PositionModel(_CamelModel):
    x: float = 0
    y: float = 0


class ColumnModel(_CamelModel):
    name: str
    type: str
    is_primary_key: bool = Field(default=False, alias="isPrimaryKey")
    is_not_null: bool = Field(default=False, alias="isNotNull")
    is_unique: bool = Field(default=False, alias="isUnique")
    is_auto_increment: bool = Field(default=False, alias="isAutoIncrement")
    is_indexed: bool = Field(default=False, alias="isIndexed")
    default_value: Optional[str] = Field(default=None, alias="defaultValue")
    check_constraint: Optional[str] = Field(default=None, alias="checkConstraint")


class TableModel(_CamelModel):
    label: str
    columns: List[ColumnModel] = Field(default_factory=list)
    position: Optional[PositionModel] = None


class ReferenceModel(_CamelModel):
    source_table: str = Field(alias="sourceTable")
    source_column: str = Field(alias="sourceColumn")
    target_table: str = Field(alias="targetTable")
    target_column: str = Field(alias="targetColumn")
    direction: Literal[">", "<"] = ">"
    options: str = ""


class SchemaModel(_CamelModel):
    tables: List[TableModel] = Field(default_factory=list)
    references: List[ReferenceModel] = Field(default_factory=list)

    @classmethod
    def from_schema(cls, schema: Schema) -> "SchemaModel":
        return cls(
            tables=[
                TableModel(
                    label=t.name,
                    columns=[ColumnModel(**vars(c)) for c in t.columns],
                    position=PositionModel(x=t.position[0], y=t.position[1]) if t.position else None,
                )
                for t in schema.tables
            ],
            references=[ReferenceModel(**vars(r)) for r in schema.references],
        )

    def to_schema(self) -> Schema:
        schema = Schema()
        for t in self.tables:
            schema.add_table(Table(
                name=t.label,
                columns=[Column(**c.model_dump()) for c in t.columns],
                position=(t.position.x, t.position.y) if t.position else None,
            ))
        for r in self.references:
            schema.add_reference(Reference(**r.model_dump()))
        return schema


def schema_to_json(schema: Schema, indent: int = 2) -> str:
    return SchemaModel.from_schema(schema).model_dump_json(by_alias=True, indent=indent)


def schema_from_json(text: str) -> Schema:
    try:
        return SchemaModel.model_validate_json(text).to_schema()
    except ValidationError as e:
        raise InputError(f"Invalid schema JSON: {e.error_count()} validation error(s)\n{e}") from e
    except SchemaError as e:
        raise InputError(f"Invalid schema JSON: {e}") from e
