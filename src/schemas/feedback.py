"""Pydantic schemas for feedback forms, questions, answers and submissions.

Questions are a tagged union discriminated by ``type``; each variant carries
only the fields that variant needs. Backend payloads use Mongo-style ``_id``
and camelCase keys, accepted here as aliases.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.models.enums import QuestionType

DEFAULT_THANK_YOU = "Thank you for your feedback!"
DEFAULT_TEXT_PLACEHOLDER = "Enter your answer here..."

# int for ratings, str for text / single choice, frozenset for checkboxes
AnswerValue = Union[int, str, frozenset[str]]


# ── Questions ────────────────────────────────────────────────────────


class _QuestionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    text: str
    description: str | None = None
    required: bool = False

    @property
    def question_type(self) -> QuestionType:
        return QuestionType(self.type)  # type: ignore[attr-defined]


class RatingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    max: int = Field(default=5, ge=1)


class TextSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    placeholder: str = DEFAULT_TEXT_PLACEHOLDER
    rows: int = Field(default=4, ge=1)


class RatingQuestion(_QuestionBase):
    type: Literal["rating"] = "rating"
    settings: RatingSettings = Field(default_factory=RatingSettings)

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def max_rating(self) -> int:
        return self.settings.max


class TextQuestion(_QuestionBase):
    type: Literal["text"] = "text"
    settings: TextSettings = Field(default_factory=TextSettings)

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            # Backend sends empty strings / nulls for unset settings
            return {key: value for key, value in v.items() if value not in (None, "")}
        return v


class _ChoiceQuestion(_QuestionBase):
    options: tuple[str, ...] = ()

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> Any:
        """Anything that is not a list is treated as 'no options'."""
        if not isinstance(v, (list, tuple)):
            return ()
        return tuple(str(option) for option in v)


class MultipleChoiceQuestion(_ChoiceQuestion):
    type: Literal["multiplechoice"] = "multiplechoice"


class CheckboxQuestion(_ChoiceQuestion):
    type: Literal["checkbox"] = "checkbox"


class DropdownQuestion(_ChoiceQuestion):
    type: Literal["dropdown"] = "dropdown"


Question = Annotated[
    Union[RatingQuestion, TextQuestion, MultipleChoiceQuestion, CheckboxQuestion, DropdownQuestion],
    Field(discriminator="type"),
]


# ── Forms & restaurants ──────────────────────────────────────────────


class FeedbackForm(BaseModel):
    """A named, ordered collection of questions."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    thank_you_message: str = Field(
        default=DEFAULT_THANK_YOU,
        validation_alias=AliasChoices("thankYouMessage", "thank_you_message"),
    )
    is_default: bool = Field(default=False, validation_alias=AliasChoices("isDefault", "is_default"))
    questions: tuple[Question, ...] = ()

    @field_validator("thank_you_message", mode="before")
    @classmethod
    def _default_thank_you(cls, v: Any) -> Any:
        return v or DEFAULT_THANK_YOU

    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]


class RestaurantInfo(BaseModel):
    """Public restaurant data needed by the customer flow."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    google_place_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("googlePlaceId", "google_place_id"),
    )


class MenuCategory(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str


class MenuItem(BaseModel):
    """One public dish; backend fields beyond these are passed through."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    description: str | None = None
    price: float | None = None
    category_id: str | None = Field(default=None, validation_alias=AliasChoices("categoryId", "category_id"))


# ── Submission ───────────────────────────────────────────────────────


class ApiContext(BaseModel):
    """Credentials threaded explicitly through the backend client."""

    model_config = ConfigDict(frozen=True)

    token: str | None = None

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


class SubmissionContext(BaseModel):
    """Who is submitting, for which form, from which visit."""

    model_config = ConfigDict(frozen=True)

    form_id: str
    restaurant_id: str
    visit_id: str | None = None
    customer_phone: str | None = None


class SubmissionPayload(BaseModel):
    """Body of ``POST /feedback/forms/{form_id}/submit``."""

    model_config = ConfigDict(populate_by_name=True)

    answers: dict[str, Any]
    restaurant_id: str = Field(serialization_alias="restaurantId")
    visit_id: str | None = Field(default=None, serialization_alias="customerVisitId")
    customer_phone: str | None = Field(default=None, serialization_alias="customerPhone")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SubmissionReceipt(BaseModel):
    """Backend acknowledgement of a stored feedback response."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    response_id: str = Field(validation_alias=AliasChoices("responseId", "response_id"))


class CustomerAuthRequest(BaseModel):
    """Customer phone verification from the table landing page."""

    phone: str = Field(min_length=10)
    table_id: str | None = None

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        stripped = v.strip()
        if len(stripped) < 10:
            msg = "Phone number is too short"
            raise ValueError(msg)
        return stripped
