"""Structured output the model must return for a homepage audit."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class Contacts(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class Who(BaseModel):
    clinic_name: Optional[str] = None
    people: list[str] = Field(default_factory=list)
    contacts: Contacts = Field(default_factory=Contacts)


class What(BaseModel):
    services: list[str] = Field(default_factory=list)
    treatments: list[str] = Field(default_factory=list)


class Where(BaseModel):
    cities: list[str] = Field(default_factory=list)
    service_area: list[str] = Field(default_factory=list)


class Scores(BaseModel):
    who: float = Field(ge=0, le=100)
    what: float = Field(ge=0, le=100)
    where: float = Field(ge=0, le=100)
    entity: float = Field(ge=0, le=100)


class Sentence(BaseModel):
    text: str
    kind: Literal["who", "what", "where", "general"]
    priority: int = Field(ge=1, le=5)
    rationale: Optional[str] = None


class ExtractedEntity(BaseModel):
    etype: str
    value: str


class AuditExtraction(BaseModel):
    """Who/what/where extraction, scores, issues and quotable sentences."""

    who: Who
    what: What
    where: Where
    scores: Scores
    issues: list[str] = Field(default_factory=list)
    sentences: list[Sentence] = Field(default_factory=list)
    extracted_entities: list[ExtractedEntity] = Field(default_factory=list)
    summary: Optional[str] = None
