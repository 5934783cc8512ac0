"""
Data models for work-item operations.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PatchOperation(BaseModel):
    """
    One JSON-patch operation on a work item.

    Example:
        >>> PatchOperation(op="add", path="/fields/System.State", value="Active")
    """

    model_config = ConfigDict(populate_by_name=True)

    op: Literal["add", "remove", "replace", "move", "copy", "test"] = "add"
    path: str = Field(..., min_length=1)
    value: Any = None
    from_: str | None = Field(default=None, alias="from")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WorkItemUpdate(BaseModel):
    """A JSON-patch document targeting one work item."""

    id: int = Field(..., ge=1)
    operations: list[PatchOperation] = Field(default_factory=list)

    def patch_document(self) -> list[dict[str, Any]]:
        return [operation.to_wire() for operation in self.operations]

    @classmethod
    def set_fields(cls, work_item_id: int, fields: dict[str, Any]) -> WorkItemUpdate:
        """
        Build an update that sets each field.

        Example:
            >>> WorkItemUpdate.set_fields(42, {"System.State": "Closed"}).patch_document()
            [{'op': 'add', 'path': '/fields/System.State', 'value': 'Closed'}]
        """
        return cls(
            id=work_item_id,
            operations=[
                PatchOperation(op="add", path=f"/fields/{name}", value=value)
                for name, value in fields.items()
            ],
        )


class SyncSummary(BaseModel):
    """Counts over a result list where ``None`` marks a skipped/failed entry."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    @classmethod
    def from_results(cls, results: list[Any]) -> SyncSummary:
        failed = sum(1 for r in results if r is None)
        return cls(total=len(results), succeeded=len(results) - failed, failed=failed)


__all__ = ["PatchOperation", "WorkItemUpdate", "SyncSummary"]
