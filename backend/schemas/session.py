from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AnswerMode = Literal["full", "hints"]
QuestionSource = Literal["audio", "screen"]


class WireModel(BaseModel):
    """camelCase on the wire and on disk, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UserContext(WireModel):
    enabled: bool = False
    job_title: Optional[str] = None
    field: Optional[str] = None
    job_description: Optional[str] = None
    company_info: Optional[str] = None
    additional_notes: Optional[str] = None

    def lines(self, include_notes: bool = True) -> List[str]:
        """Labelled non-empty fields; always empty when the context is disabled."""
        if not self.enabled:
            return []
        pairs = [
            ("Job Title", self.job_title),
            ("Field/Domain", self.field),
            ("Job Description", self.job_description),
            ("Company", self.company_info),
        ]
        if include_notes:
            pairs.append(("Additional Context", self.additional_notes))
        return [f"{label}: {value.strip()}" for label, value in pairs if value and value.strip()]


class CodeSnippet(WireModel):
    language: str
    code: str


class QuestionAnswer(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    question: str
    answer: str
    code_snippets: Optional[List[CodeSnippet]] = None
    source: QuestionSource = "audio"
    mode: AnswerMode = "full"
    provider: str
    timestamp: int  # epoch ms


class Session(WireModel):
    id: str
    start_time: int  # epoch ms
    end_time: Optional[int] = None
    questions: List[QuestionAnswer] = Field(default_factory=list)
    context: Optional[UserContext] = None
