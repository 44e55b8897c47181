from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_ID = 2**63 - 1


class _Record(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class SetEntry(_Record):
    weight: str = ""
    reps: str = ""


class LogExercise(_Record):
    name: str
    sets: List[SetEntry] = Field(default_factory=list)


class PlanExercise(_Record):
    name: str
    goalSets: int = Field(default=3, ge=0)
    goalReps: str = "8-12"

    @field_validator("goalSets", mode="before")
    @classmethod
    def _blank_goal_sets(cls, value):
        # blank input means the default
        if value is None or (isinstance(value, str) and not value.strip()):
            return 3
        return value


class ExerciseRecord(_Record):
    id: Optional[int] = Field(default=None, le=MAX_ID)
    name: str


class PlanRecord(_Record):
    id: Optional[int] = Field(default=None, le=MAX_ID)
    title: str
    exercises: List[PlanExercise] = Field(default_factory=list)


class LogRecord(_Record):
    id: Optional[int] = Field(default=None, le=MAX_ID)
    planTitle: str = ""
    date: str
    exercises: List[LogExercise] = Field(default_factory=list)


class Snapshot(BaseModel):
    """Whole-store backup: every collection with ids kept verbatim."""

    logs: List[LogRecord] = Field(default_factory=list)
    plans: List[PlanRecord] = Field(default_factory=list)
    exercises: List[ExerciseRecord] = Field(default_factory=list)


class NewPlan(_Record):
    title: str
    exercises: List[PlanExercise] = Field(default_factory=list)


class NewLog(_Record):
    planTitle: str = ""
    date: Optional[str] = None
    exercises: List[LogExercise] = Field(default_factory=list)
