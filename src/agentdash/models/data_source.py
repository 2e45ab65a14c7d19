"""Tabular data source models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


class DataSourceMetadata(BaseModel):
    row_count: int = Field(default=0, validation_alias=AliasChoices("row_count", "rowCount"))
    column_count: int = Field(
        default=0, validation_alias=AliasChoices("column_count", "columnCount")
    )


class DataSource(BaseModel):
    id: str
    name: str
    rows: list[dict[str, Any]] = Field(
        default_factory=list, validation_alias=AliasChoices("rows", "data")
    )
    columns: list[str] = []
    metadata: Optional[DataSourceMetadata] = None

    @model_validator(mode="after")
    def _fill_derived(self) -> "DataSource":
        if not self.columns and self.rows:
            self.columns = list(self.rows[0].keys())
        if self.metadata is None:
            self.metadata = DataSourceMetadata(
                row_count=len(self.rows), column_count=len(self.columns)
            )
        return self

    @property
    def row_count(self) -> int:
        return (self.metadata.row_count if self.metadata else 0) or len(self.rows)

    @property
    def column_count(self) -> int:
        return (self.metadata.column_count if self.metadata else 0) or len(self.columns)
