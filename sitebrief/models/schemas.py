from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

NOT_FOUND = "Not found"
DEFAULT_GOAL = "Competitor Snapshot"


# --- Brief ---


class _BriefItem(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    source_url: str = NOT_FOUND
    evidence: str = NOT_FOUND

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class KeyFact(_BriefItem):
    label: str = NOT_FOUND
    value: str = NOT_FOUND


class PricingOffer(_BriefItem):
    plan: str = NOT_FOUND
    price: str = NOT_FOUND
    notes: str = NOT_FOUND


class ClaimProof(_BriefItem):
    claim: str = NOT_FOUND
    proof: str = NOT_FOUND


class FaqPolicy(_BriefItem):
    question: str = NOT_FOUND
    answer: str = NOT_FOUND


class TrustSignal(_BriefItem):
    signal: str = NOT_FOUND


class Entity(_BriefItem):
    name: str = NOT_FOUND
    type: str = NOT_FOUND
    relevance: str = NOT_FOUND


class BriefSource(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    url: str = NOT_FOUND
    title: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _normalize_entry(entry: Any, model: type[BaseModel], primary: str) -> dict[str, Any] | None:
    """Coerce one array entry into an item dict, or ``None`` to drop it."""
    if isinstance(entry, dict):
        return {
            key: _as_text(value) if key in model.model_fields and value is not None else value
            for key, value in entry.items()
        }
    if entry is None or isinstance(entry, (bool, list)):
        return None
    text = _as_text(entry).strip()
    if not text or text == NOT_FOUND:
        return None
    return {primary: text}


def _normalize_items(value: Any, model: type[BaseModel], primary: str) -> list[dict[str, Any]]:
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    entries = (_normalize_entry(entry, model, primary) for entry in value)
    return [entry for entry in entries if entry is not None]


def _normalize_risks(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [_as_text(entry) for entry in value if entry is not None]


# Array field -> (item model, field that receives a bare scalar entry).
BRIEF_ITEM_FIELDS: dict[str, tuple[type[BaseModel], str]] = {
    "key_facts": (KeyFact, "value"),
    "pricing_offers": (PricingOffer, "plan"),
    "claims_proof": (ClaimProof, "claim"),
    "faqs_policies": (FaqPolicy, "question"),
    "trust_signals": (TrustSignal, "signal"),
    "entities": (Entity, "name"),
    "sources": (BriefSource, "url"),
}
BRIEF_TEXT_FIELDS = ("title", "one_liner", "executive_summary")


class Brief(BaseModel):
    """Structured, citation-backed summary of a crawled site."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    title: str = NOT_FOUND
    one_liner: str = NOT_FOUND
    executive_summary: str = NOT_FOUND
    key_facts: list[KeyFact] = Field(default_factory=list)
    pricing_offers: list[PricingOffer] = Field(default_factory=list)
    claims_proof: list[ClaimProof] = Field(default_factory=list)
    faqs_policies: list[FaqPolicy] = Field(default_factory=list)
    trust_signals: list[TrustSignal] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    risks_gaps: list[str] = Field(default_factory=list)
    sources: list[BriefSource] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_shapes(cls, data: Any) -> Any:
        """Bend loosely shaped model output into the field types; nulls stay for the defaults."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name in BRIEF_TEXT_FIELDS:
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                data[name] = _as_text(value)
        for name, (model, primary) in BRIEF_ITEM_FIELDS.items():
            if data.get(name) is not None:
                data[name] = _normalize_items(data[name], model, primary)
        if data.get("risks_gaps") is not None:
            data["risks_gaps"] = _normalize_risks(data["risks_gaps"])
        return data

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            field_info = cls.model_fields[info.field_name]
            return field_info.get_default(call_default_factory=True)
        return value

    @classmethod
    def not_found(cls) -> "Brief":
        """Canonical brief returned when no usable source content exists."""
        return cls(risks_gaps=[NOT_FOUND])

    def truncated(self, limits: dict[str, int]) -> "Brief":
        """Return a copy with list fields cut to ``limits``."""
        updates = {
            name: getattr(self, name)[:limit]
            for name, limit in limits.items()
            if name in type(self).model_fields
        }
        return self.model_copy(update=updates)


# --- Requests ---


class CrawlStartRequest(BaseModel):
    url: str = ""
    goal: str | None = None


# --- Responses ---


class CrawlStartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(serialization_alias="jobId")
    goal: str
    limit: int


class ProgressResponse(BaseModel):
    status: str = "processing"
    completed: int = 0
    total: int = 0


class ReadyResponse(BaseModel):
    status: Literal["completed"] = "completed"
    ready: bool = True
    completed: int = 0
    total: int = 0


class BriefMeta(BaseModel):
    pages_used: int = 0
    total_pages: int = 0
    pagination_truncated: bool = False
    pagination_requests: int = 0
    pagination_error: dict[str, Any] | None = None
    json_repaired: bool = False
    selected_intents: list[str] = Field(default_factory=list)
    model: str | None = None
    stop_reason: str | None = None
    usage: dict[str, Any] | None = None


class BriefResponse(BaseModel):
    status: Literal["completed"] = "completed"
    result: Brief
    meta: BriefMeta = Field(default_factory=BriefMeta)


class FailureResponse(BaseModel):
    status: Literal["failed"] = "failed"
    error: str
    detail: Any = None
    raw: str | None = None
    repair: dict[str, Any] | None = None
    status_code: int = Field(default=502, exclude=True)
