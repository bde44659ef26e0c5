# schemas/process_guide.py
from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

# ---------- Persisted Rows ----------

class Process(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    category: str = ""
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

class ProcessStep(BaseModel):
    """
    One unit of a process guide.

    ``next_step_id`` is three-way: never provided means "fall through to
    step_number + 1", provided as None means "the process ends here",
    provided as an id means "jump to that step".
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    process_id: str = Field(default="", alias="processId")
    step_number: int = Field(..., alias="stepNumber", ge=1)
    title: str = ""
    description: str = ""
    is_decision: bool = Field(default=False, alias="isDecision")
    next_step_id: Optional[str] = Field(default=None, alias="nextStepId")

    @property
    def has_explicit_next(self) -> bool:
        return "next_step_id" in self.model_fields_set

    @model_serializer(mode="wrap")
    def _omit_unset_next(self, handler):
        data = handler(self)
        if not self.has_explicit_next:
            data.pop("nextStepId", None)
            data.pop("next_step_id", None)
        return data

class StepBranch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    step_id: str = Field(..., alias="stepId")
    condition: str  # "yes" | "no"
    next_step_id: Optional[str] = Field(default=None, alias="nextStepId")
    description: str = ""

    @field_validator("condition")
    @classmethod
    def normalize_condition(cls, value: str) -> str:
        return value.strip().lower()

# ---------- Request / Response Payloads ----------

class ProcessBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str
    description: str = ""
    category: str = ""

class ProcessGuideCreate(BaseModel):
    process: ProcessBase
    steps: List[ProcessStep] = Field(default_factory=list)
    branches: List[StepBranch] = Field(default_factory=list)

class ProcessGuideUpdate(BaseModel):
    process: ProcessBase
    steps: List[ProcessStep] = Field(default_factory=list)
    branches: List[StepBranch] = Field(default_factory=list)

class ProcessGuideDetail(BaseModel):
    process: Process
    steps: List[ProcessStep] = Field(default_factory=list)
    branches: List[StepBranch] = Field(default_factory=list)

class DatabaseExport(BaseModel):
    processes: List[Process] = Field(default_factory=list)
    steps: List[ProcessStep] = Field(default_factory=list)
    branches: List[StepBranch] = Field(default_factory=list)

class DatabaseStats(BaseModel):
    processes: int = 0
    steps: int = 0
    branches: int = 0
