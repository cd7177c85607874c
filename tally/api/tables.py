"""Tables API: one-shot aggregation and transposition of posted tables."""

import logging
from typing import Any, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from tally.core import AggregateConfig, TransposeConfig, aggregate, transpose
from tally.errors import TallyError
from tally.io import OrgTableSink
from tally.table import Table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["tables"])

RawRow = Union[list[Any], str, None]


class TablePayload(BaseModel):
    rows: list[RawRow]
    has_header: bool = True
    render: bool = Field(default=False, description="Also return org text")

    def table(self) -> Table:
        return Table.from_rows(self.rows, has_header=self.has_header)


class AggregateRequest(TablePayload):
    config: AggregateConfig


class TransposeRequest(TablePayload):
    config: TransposeConfig = Field(default_factory=TransposeConfig)


def _respond(result: Table, render: bool) -> dict[str, Any]:
    body = result.to_dict()
    if render:
        body["text"] = OrgTableSink().render(result)
    return body


@router.post("/aggregate")
def aggregate_table(request: AggregateRequest):
    try:
        result = aggregate(request.table(), request.config)
    except TallyError as exc:
        logger.info("Rejected aggregation: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(result, request.render)


@router.post("/transpose")
def transpose_table(request: TransposeRequest):
    try:
        result = transpose(request.table(), request.config)
    except TallyError as exc:
        logger.info("Rejected transposition: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(result, request.render)
