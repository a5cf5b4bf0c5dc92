"""Data models for the problem archive.

Defines the Pydantic models shared by every extractor: the closed set of
source platforms, sample test cases, and the unified ProblemRecord produced by
an extraction. Records are immutable once constructed and serialize to the
camelCase JSON shape consumed by the persistence and HTTP layers.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class Platform(str, Enum):
    """Supported source websites."""

    CODEFORCES = "codeforces"
    LEETCODE = "leetcode"
    ATCODER = "atcoder"
    CODECHEF = "codechef"


class SampleTest(BaseModel):
    """Published example input/output pair.

    Attributes:
        input: Raw sample input, never empty.
        output: Expected output for the input, never empty.
        explanation: Worked explanation attached to this sample, if any.
        images: Absolute URLs of images used by the explanation.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    input: str
    output: str
    explanation: str | None = None
    images: list[str] = Field(default_factory=list)

    @field_validator("input", "output")
    @classmethod
    def _must_not_be_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("sample input and output must be non-empty")
        return value


class ProblemRecord(BaseModel):
    """Unified output of an extraction.

    Attributes:
        source: Platform the problem was extracted from.
        source_problem_id: Source-native identifier (contest+index or slug).
        url: Canonical source URL.
        title: Problem title.
        description: Statement with formulas reduced to $...$ / $$...$$.
        input_format: Input section, when the source exposes one.
        output_format: Output section, when the source exposes one.
        constraints: Constraints section, when the source exposes one.
        sample_tests: Samples in the order the source presents them.
        difficulty: Best-effort difficulty label or rating.
        tags: Best-effort topic tags.
        created_at: Extraction timestamp.
        updated_at: Extraction timestamp.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source: Platform
    source_problem_id: str
    url: str
    title: str = ""
    description: str = ""
    input_format: str | None = None
    output_format: str | None = None
    constraints: str | None = None
    sample_tests: list[SampleTest] = Field(default_factory=list)
    difficulty: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        """Stable record identifier derived from source and source problem id."""
        return make_problem_id(self.source, self.source_problem_id)

    def to_json_dict(self) -> dict[str, object]:
        """Serialize to the camelCase JSON shape used outside the core."""
        return self.model_dump(mode="json", by_alias=True)


def make_problem_id(source: Platform, source_problem_id: str) -> str:
    """Build the record id for a source problem.

    Args:
        source: Source platform.
        source_problem_id: Source-native identifier.

    Returns:
        Identifier of the form ``{source}-{source_problem_id}``.
    """
    return f"{source.value}-{source_problem_id}"
