"""Pydantic schemas for the JSON documents exchanged with the server.

The server renders XML documents as JSON, so a repeated element that occurs
only once arrives as a bare object instead of a one-item array. The
``_as_list`` validators normalise that.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


def _unwrap(data: Any, envelope: str) -> Any:
    if isinstance(data, dict) and envelope in data:
        return data[envelope] or {}
    return data


# =============================================================================
# Inputs
# =============================================================================


class InputPortDescriptor(BaseModel):
    """A declared workflow input."""

    model_config = ConfigDict(frozen=True)

    name: str
    depth: int = Field(default=0, ge=0)


class InputDescription(BaseModel):
    """Document listing the inputs a run expects."""

    model_config = ConfigDict(populate_by_name=True)

    inputs: list[InputPortDescriptor] = Field(default_factory=list, alias="input")

    @field_validator("inputs", mode="before")
    @classmethod
    def normalise_inputs(cls, value: Any) -> Any:
        return _as_list(value)

    @classmethod
    def from_payload(cls, data: Any) -> InputDescription:
        return cls.model_validate(_unwrap(data, "inputDescription"))


class RunInput(BaseModel):
    """Body used to set one input port: an inline value or a working-dir file."""

    value: str | None = None
    file: str | None = None

    @model_validator(mode="after")
    def check_one_source(self) -> RunInput:
        if (self.value is None) == (self.file is None):
            raise ValueError("exactly one of 'value' or 'file' must be given")
        return self

    def to_payload(self) -> dict[str, Any]:
        return {"runInput": self.model_dump(exclude_none=True)}


# =============================================================================
# Outputs
# =============================================================================


class ValueDescriptor(BaseModel):
    """A leaf holding data, fetched lazily from ``href``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    href: str
    content_type: str = Field(default="application/octet-stream", alias="contentType")
    size: int = Field(default=0, ge=0, alias="contentByteLength")


class ErrorDescriptor(BaseModel):
    """A leaf recording that the workflow produced an error here."""

    model_config = ConfigDict(frozen=True)

    href: str = ""
    message: str = ""


class NodeDescriptor(BaseModel):
    """One node of an output value tree: a value, an error, or a list."""

    model_config = ConfigDict(populate_by_name=True)

    value: ValueDescriptor | None = None
    error: ErrorDescriptor | None = None
    items: list[NodeDescriptor] | None = Field(default=None, alias="list")

    @field_validator("items", mode="before")
    @classmethod
    def normalise_items(cls, value: Any) -> Any:
        if value is None:
            return None
        return _as_list(value)

    @model_validator(mode="after")
    def check_at_most_one(self) -> NodeDescriptor:
        present = [f for f in ("value", "error", "items") if getattr(self, f) is not None]
        if len(present) > 1:
            raise ValueError(f"node has more than one of {present}")
        return self


class OutputPortDescriptor(NodeDescriptor):
    """A workflow output and the root of its value tree."""

    name: str
    depth: int = Field(default=0, ge=0)


class OutputDescription(BaseModel):
    """Document listing a finished run's outputs."""

    model_config = ConfigDict(populate_by_name=True)

    ports: list[OutputPortDescriptor] = Field(default_factory=list, alias="output")

    @field_validator("ports", mode="before")
    @classmethod
    def normalise_ports(cls, value: Any) -> Any:
        return _as_list(value)

    @classmethod
    def from_payload(cls, data: Any) -> OutputDescription:
        return cls.model_validate(_unwrap(data, "workflowOutputs"))
