"""
Candidate output schema.

Structured notes come straight from LLM output, so every field is optional
and loosely typed values are coerced instead of rejected. Fields that were
never sent stay unset (see ``model_fields_set``), which keeps "the model left
this out" distinct from "the model answered null".
"""
from __future__ import annotations
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.functional_validators import BeforeValidator


SECTION_NAMES = ("subjective", "objective", "assessment", "plan")


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return " ".join(t for t in (_as_text(v) for v in value) if t)
    if isinstance(value, dict):
        return " ".join(t for t in (_as_text(v) for v in value.values()) if t)
    return str(value)


def _as_text_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        value = [value]
    out = []
    for item in value:
        text = _as_text(item)
        if text is not None:
            out.append(text)
    return out


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().rstrip("%"))
        except ValueError:
            return None
    return None


def _as_section(value: Any) -> Any:
    # A section that is not an object still counts as present for schema checks
    return value if isinstance(value, dict) else None


def _medication_from_loose(value: Any) -> Any:
    if isinstance(value, str):
        return {"drug": value}
    return value


def _as_object_list(value: Any) -> Optional[List[Any]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [v for v in value if v is not None]


Text = Annotated[Optional[str], BeforeValidator(_as_text)]
TextList = Annotated[Optional[List[str]], BeforeValidator(_as_text_list)]
Number = Annotated[Optional[float], BeforeValidator(_as_number)]


class _Node(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class Vitals(_Node):
    bp: Text = None
    hr: Text = None
    temp: Text = None
    rr: Text = None
    weight: Text = None

    def reported(self) -> Dict[str, str]:
        """Vital signs that carry a non-empty value."""
        values = {"bp": self.bp, "hr": self.hr, "temp": self.temp, "rr": self.rr, "weight": self.weight}
        return {k: v for k, v in values.items() if v}


class PhysicalExam(_Node):
    findings: TextList = None
    text_raw: Text = None


class Diagnosis(_Node):
    value: Text = None
    certainty_degree: Number = None
    evidence_text: Text = None


class Medication(_Node):
    drug: Text = None
    dosage: Text = None
    sig: Text = None
    handwriting_confidence: Number = None


class Subjective(_Node):
    chief_complaint: Text = None
    hpi: Text = None
    symptoms: TextList = None
    patient_history: Text = None


class Objective(_Node):
    vitals: Optional[Vitals] = None
    physical_exam: Union[PhysicalExam, str, None] = None
    labs_imaging: Text = None

    @field_validator("vitals", mode="before")
    @classmethod
    def vitals_object(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None

    @field_validator("physical_exam", mode="before")
    @classmethod
    def exam_text_or_object(cls, v: Any) -> Any:
        if v is None or isinstance(v, (str, dict)):
            return v
        return _as_text(v)


class Assessment(_Node):
    primary_diagnosis: Optional[Diagnosis] = None
    differential_diagnosis: Optional[List[Union[Diagnosis, str]]] = None

    @field_validator("primary_diagnosis", mode="before")
    @classmethod
    def diagnosis_object(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"value": v}
        return v if isinstance(v, dict) else None

    @field_validator("differential_diagnosis", mode="before")
    @classmethod
    def differentials(cls, v: Any) -> Any:
        items = _as_object_list(v)
        if items is None:
            return None
        return [i if isinstance(i, (str, dict)) else _as_text(i) for i in items]


class Plan(_Node):
    medications: Optional[List[Medication]] = None
    procedures_ordered: TextList = None
    patient_instructions: Text = None

    @field_validator("medications", mode="before")
    @classmethod
    def medication_objects(cls, v: Any) -> Any:
        items = _as_object_list(v)
        if items is None:
            return None
        return [_medication_from_loose(i) for i in items if isinstance(i, (str, dict))]


class StructuredNote(_Node):
    """SOAP note produced by a model. All sections optional."""
    subjective: Optional[Subjective] = None
    objective: Optional[Objective] = None
    assessment: Optional[Assessment] = None
    plan: Optional[Plan] = None

    @field_validator(*SECTION_NAMES, mode="before")
    @classmethod
    def section_object(cls, v: Any) -> Any:
        return _as_section(v)

    def has_section(self, name: str) -> bool:
        """True when the section key was supplied, whatever its content."""
        return name in self.model_fields_set

    def raw_tree(self) -> Dict[str, Any]:
        """Supplied fields only, as plain data (explicit nulls kept)."""
        return self.model_dump(exclude_unset=True)


class CandidateMetadata(BaseModel):
    model_config = ConfigDict(
        extra="allow", frozen=True, populate_by_name=True, protected_namespaces=()
    )

    image: str
    prompt: str
    model: str
    prompt_name: str = Field(default="", alias="promptName")
    model_name: str = Field(default="", alias="modelName")
    provider: str = ""
    timestamp: str = ""
    latency_ms: Number = Field(default=None, alias="latencyMs")
    error: Optional[str] = None


class CandidatePayload(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    soap_note: Optional[StructuredNote] = None
    raw_response: Optional[str] = None
    # Decoded soap_note object before coercion
    soap_note_raw: Optional[Dict[str, Any]] = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def keep_raw_note(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("soap_note"), dict):
            data = {**data, "soap_note_raw": data["soap_note"]}
        return data

    @field_validator("soap_note", mode="before")
    @classmethod
    def note_object(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None


class CandidateOutput(BaseModel):
    """One batch result file: generation metadata plus the model output (or null)."""
    model_config = ConfigDict(extra="allow", frozen=True)

    metadata: CandidateMetadata
    output: Optional[CandidatePayload] = None

    @property
    def note(self) -> Optional[StructuredNote]:
        return self.output.soap_note if self.output is not None else None

    @property
    def raw_note(self) -> Optional[Dict[str, Any]]:
        """The note exactly as decoded from JSON, or None."""
        return self.output.soap_note_raw if self.output is not None else None

    @property
    def failed(self) -> bool:
        return bool(self.metadata.error) or self.output is None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> CandidateOutput:
        """Validate a decoded batch result file."""
        return cls.model_validate(d)
