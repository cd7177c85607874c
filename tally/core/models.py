"""Configuration models for aggregation and transposition runs."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


AngleMode = Literal["deg", "rad"]
FloatStyle = Literal["float", "fix", "sci", "eng"]


class NumericFormat(BaseModel):
    """Invocation-wide numeric rendering context.

    Column format segments override these per column.
    """

    model_config = ConfigDict(frozen=True)

    precision: int = Field(default=12, ge=1, le=60)
    angle_mode: AngleMode = "deg"
    float_style: FloatStyle = "float"
    prefer_fraction: bool = False


class AggregateConfig(BaseModel):
    cols: str = Field(min_length=1, description="Whitespace-separated column specs")
    cond: Optional[str] = Field(default=None, description="Row filter formula")
    hline: int = Field(default=0, ge=0, description="Separator depth over sort keys")
    numeric: NumericFormat = Field(default_factory=NumericFormat)

    @model_validator(mode="before")
    @classmethod
    def _coerce_nulls(cls, values: dict) -> dict:
        """Replace explicit nulls coming from JSON payloads with defaults."""
        if isinstance(values, dict):
            values = dict(values)
            if values.get("hline") is None:
                values["hline"] = 0
            if values.get("numeric") is None:
                values["numeric"] = {}
            if isinstance(values.get("cond"), str) and not values["cond"].strip():
                values["cond"] = None
        return values


class TransposeConfig(BaseModel):
    cols: Optional[str] = Field(default=None, description="Columns to turn into rows")
    cond: Optional[str] = Field(default=None, description="Row filter formula")

    @model_validator(mode="before")
    @classmethod
    def _coerce_blanks(cls, values: dict) -> dict:
        if isinstance(values, dict):
            values = dict(values)
            for key in ("cols", "cond"):
                if isinstance(values.get(key), str) and not values[key].strip():
                    values[key] = None
        return values
