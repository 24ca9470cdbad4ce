"""Draft review composer.

Turns a completed wizard's ratings and free-text answers into one paragraph
the customer can edit and post on the external review platform. Pure and
deterministic: same answers and restaurant name, same text.

Band by average rating:
    >= 4  positive
    >= 3  neutral
    else  negative (also when nothing was rated)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from src.config import settings
from src.models.enums import QuestionType, ReviewBand
from src.schemas.feedback import AnswerValue, Question

POSITIVE_THRESHOLD = 4
NEUTRAL_THRESHOLD = 3

_SUBJECT_PREFIX = "how would you rate "

POSITIVE_OPENING = "I had a great experience at {name}! "
POSITIVE_SUBJECT = "I was particularly impressed with {subject}. "
POSITIVE_CLOSING = "I would definitely recommend this place to others."

NEUTRAL_OPENING = "I had a decent experience at {name}. "
NEUTRAL_SUBJECT = "The {subject} was good. "
NEUTRAL_CLOSING = "It's worth a visit if you're in the area."

NEGATIVE_OPENING = "My experience at {name} was below expectations. "
NEGATIVE_SUBJECT = "I was disappointed with the {subject}. "
NEGATIVE_CLOSING = "I hope they can improve in the future."


@dataclass(frozen=True)
class RatedQuestion:
    question_text: str
    rating: int


@dataclass(frozen=True)
class DraftReview:
    """Generated review text plus how it was chosen."""

    text: str
    band: ReviewBand
    average_rating: float


def question_subject(question_text: str) -> str:
    """'How would you rate our food?' -> 'our food'."""
    subject = question_text.strip().lower()
    if subject.startswith(_SUBJECT_PREFIX):
        subject = subject[len(_SUBJECT_PREFIX):]
    if subject.endswith("?"):
        subject = subject[:-1]
    return subject.strip()


def select_band(average_rating: float) -> ReviewBand:
    if average_rating >= POSITIVE_THRESHOLD:
        return ReviewBand.POSITIVE
    if average_rating >= NEUTRAL_THRESHOLD:
        return ReviewBand.NEUTRAL
    return ReviewBand.NEGATIVE


def _partition(
    questions: Sequence[Question],
    answers: Mapping[str, AnswerValue],
) -> tuple[list[RatedQuestion], list[str]]:
    ratings: list[RatedQuestion] = []
    texts: list[str] = []
    for question in questions:
        value = answers.get(question.id)
        if value is None:
            continue
        if question.question_type == QuestionType.RATING and isinstance(value, int):
            ratings.append(RatedQuestion(question_text=question.text, rating=value))
        elif question.question_type == QuestionType.TEXT and isinstance(value, str):
            texts.append(value)
    return ratings, texts


def compose_review(
    questions: Sequence[Question],
    answers: Mapping[str, AnswerValue],
    restaurant_name: str | None = None,
) -> DraftReview:
    """Build the draft review for a finished feedback session.

    Args:
        questions: The form's questions, in display order.
        answers: Committed answers keyed by question id.
        restaurant_name: Shown in the opening sentence; falls back to a
            generic name when the restaurant has none.

    Returns:
        DraftReview with the text, the selected band and the average rating.
    """
    name = restaurant_name or settings.review.fallback_restaurant_name
    ratings, texts = _partition(questions, answers)

    average = sum(r.rating for r in ratings) / len(ratings) if ratings else 0.0
    band = select_band(average)

    # max()/min() return the first extreme in question order
    if band == ReviewBand.POSITIVE:
        opening, subject_template, closing = POSITIVE_OPENING, POSITIVE_SUBJECT, POSITIVE_CLOSING
        featured = max(ratings, key=lambda r: r.rating) if ratings else None
    elif band == ReviewBand.NEUTRAL:
        opening, subject_template, closing = NEUTRAL_OPENING, NEUTRAL_SUBJECT, NEUTRAL_CLOSING
        featured = max(ratings, key=lambda r: r.rating) if ratings else None
    else:
        opening, subject_template, closing = NEGATIVE_OPENING, NEGATIVE_SUBJECT, NEGATIVE_CLOSING
        featured = min(ratings, key=lambda r: r.rating) if ratings else None

    parts = [opening.format(name=name)]
    if featured is not None:
        parts.append(subject_template.format(subject=question_subject(featured.question_text)))

    detail = next((t.strip() for t in texts if t.strip()), None)
    if detail:
        parts.append(f"{detail} ")

    parts.append(closing)
    return DraftReview(text="".join(parts), band=band, average_rating=average)
