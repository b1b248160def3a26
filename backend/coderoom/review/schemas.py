"""Pydantic schemas for structured code-review reports.

Note:
    Field names use camelCase (e.g., edgeCases, refactorSuggestions) to match
    the JSON shape the model is prompted to produce and the client expects.
"""
from typing import List, Literal

from pydantic import BaseModel, Field

ReviewSeverity = Literal["critical", "major", "minor"]
ReviewEffort = Literal["low", "medium", "high"]

# Every list in a report is capped at this many items.
MAX_ARRAY_ITEMS = 5


class ReviewIssue(BaseModel):
    """A single problem found in the reviewed code."""
    severity: ReviewSeverity
    title: str
    description: str
    location: str


class RefactorSuggestion(BaseModel):
    """A proposed improvement with an effort estimate."""
    title: str
    rationale: str
    effort: ReviewEffort


class ReviewReport(BaseModel):
    """Structured review recovered from model output.

    Attributes:
        summary: Short overall assessment.
        issues: Problems found, most important first.
        edgeCases: Inputs or situations worth checking.
        refactorSuggestions: Suggested improvements.
        testPlan: Tests to add.
    """
    summary: str = ""
    issues: List[ReviewIssue] = Field(default_factory=list, max_length=MAX_ARRAY_ITEMS)
    edgeCases: List[str] = Field(default_factory=list, max_length=MAX_ARRAY_ITEMS)
    refactorSuggestions: List[RefactorSuggestion] = Field(
        default_factory=list, max_length=MAX_ARRAY_ITEMS
    )
    testPlan: List[str] = Field(default_factory=list, max_length=MAX_ARRAY_ITEMS)


class ReviewRecord(BaseModel):
    """A stored review artifact keyed by the conversation hash."""
    ts: int = Field(..., description="Creation time (ms since epoch)")
    content: ReviewReport
    inputHash: str


class ReviewRequest(BaseModel):
    """Request body for POST /api/rooms/{room_id}/review."""
    force: bool = False


class ReviewResponse(BaseModel):
    """Response body for POST /api/rooms/{room_id}/review."""
    review: ReviewRecord
    cached: bool
