"""API schemas for store resource endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..resources import ImportReport, ProductImportRow


class ProductImportRequest(BaseModel):
    rows: List[ProductImportRow] = Field(default_factory=list, max_length=5000)


class ImportRowErrorResponse(BaseModel):
    row_number: int = Field(alias="rowNumber")
    message: str

    model_config = ConfigDict(populate_by_name=True)


class ProductImportResponse(BaseModel):
    imported: int
    failed: int
    errors: List[ImportRowErrorResponse]
    halted_at_row: Optional[int] = Field(alias="haltedAtRow", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_report(cls, report: ImportReport) -> "ProductImportResponse":
        return cls(
            imported=report.imported,
            failed=report.failed,
            errors=[ImportRowErrorResponse(row_number=error.row_number, message=error.message) for error in report.errors],
            halted_at_row=report.halted_at_row,
        )


class CreatedResourceResponse(BaseModel):
    id: str
    slug: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CreatedResourceResponse":
        return cls(id=str(row.get("id")), slug=str(row.get("slug")), data=row)
