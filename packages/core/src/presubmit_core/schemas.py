"""Shapes exchanged with the language model.

Every model response is validated against one of these before it is used.
Responses that fail validation are downgraded to an empty or negative
result by the caller rather than propagated.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class FileSummary(BaseModel):
    filename: str
    title: str = ""
    summary: str = ""


class PullRequestSummary(BaseModel):
    title: str
    description: str = ""
    type: list[str] = Field(default_factory=list)
    files: list[FileSummary] = Field(default_factory=list)


class AIComment(BaseModel):
    """One finding produced by the reviewer.

    A comment without ``end_line`` targets the whole file.
    """

    file: str
    start_line: int | None = None
    end_line: int | None = None
    label: str = ""
    header: str = ""
    content: str = ""
    highlighted_code: str = ""
    critical: bool = False

    @field_validator("label", "header")
    @classmethod
    def _collapse_whitespace(cls, value: str) -> str:
        # The review summary stores these on one line; identities must match what it parses back.
        return " ".join(value.split())

    @model_validator(mode="after")
    def _single_line_range(self) -> AIComment:
        if self.start_line is None and self.end_line is not None:
            self.start_line = self.end_line
        return self

    @property
    def identity(self) -> tuple[str, int | None, int | None, str]:
        return (self.file, self.start_line, self.end_line, self.header)

    @property
    def is_file_comment(self) -> bool:
        return not self.end_line


class ReviewResult(BaseModel):
    comments: list[AIComment] = Field(default_factory=list)


DiagramType = Literal[
    "flowchart",
    "sequence",
    "class",
    "state",
    "entity-relationship",
    "gitgraph",
    "architecture",
    "none",
]


class DiagramResult(BaseModel):
    should_generate: bool = False
    type: DiagramType = "none"
    diagram: str | None = None
    title: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _downgrade_incomplete(self) -> DiagramResult:
        # A positive answer without a body or title is useless to render.
        if self.should_generate and not (self.diagram and self.title):
            self.should_generate = False
            self.type = "none"
            self.diagram = self.title = self.description = None
        return self
