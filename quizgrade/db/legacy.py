"""Normalisation of stored question / answer shapes.

Rows written by older versions of the platform use ``mcq`` and ``boolean``
question types and sometimes keep correctness only in a free-text
``correct_answer`` column (an option letter, the option text, or a JSON
list of either). This module is the one place those shapes are mapped onto
the typed question records; nothing downstream ever sees them.
"""

from __future__ import annotations

import json
import logging
import string
from collections.abc import Mapping, Sequence
from typing import Any

from quizgrade.exceptions import IntegrityError, ValidationError
from quizgrade.schemas.quiz import QuestionType, YesNo

logger = logging.getLogger(__name__)

_TYPE_ALIASES: dict[str, QuestionType | None] = {
    "single_choice": QuestionType.SINGLE_CHOICE,
    "mcq_single": QuestionType.SINGLE_CHOICE,
    "multiple_choice": QuestionType.MULTIPLE_CHOICE,
    "mcq_multiple": QuestionType.MULTIPLE_CHOICE,
    "yes_no": QuestionType.YES_NO,
    "boolean": QuestionType.YES_NO,
    # Legacy "mcq" is single or multiple depending on how many options are correct
    "mcq": None,
}

# Column values written for each canonical type
STORED_TYPES: dict[QuestionType, str] = {
    QuestionType.SINGLE_CHOICE: "mcq_single",
    QuestionType.MULTIPLE_CHOICE: "mcq_multiple",
    QuestionType.YES_NO: "yes_no",
}

_YES = {"yes", "y", "true", "1"}
_NO = {"no", "n", "false", "0"}


def parse_yes_no(value: Any) -> YesNo | None:
    """Map yes/no spellings (and booleans) onto ``YesNo``; None if unrecognised."""
    if isinstance(value, bool):
        return YesNo.YES if value else YesNo.NO
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in _YES:
        return YesNo.YES
    if text in _NO:
        return YesNo.NO
    return None


def _answer_tokens(correct_answer: str) -> list[str]:
    text = correct_answer.strip()
    if text.startswith("["):
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError:
            loaded = None
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


def _recover_correct_positions(
    options: Sequence[Mapping[str, Any]], correct_answer: str
) -> set[int]:
    """Positions of options named by a legacy ``correct_answer`` string.

    Each token is matched against option text first, then as an option
    letter (A, B, ...), then as an option id.
    """
    positions: set[int] = set()
    texts = [str(o.get("text", "")).strip().lower() for o in options]
    ids = [str(o.get("id")) for o in options]
    for token in _answer_tokens(correct_answer):
        lowered = token.lower()
        if lowered in texts:
            positions.add(texts.index(lowered))
        elif len(token) == 1 and token.upper() in string.ascii_uppercase[: len(options)]:
            positions.add(string.ascii_uppercase.index(token.upper()))
        elif token in ids:
            positions.add(ids.index(token))
        else:
            logger.debug("Legacy correct_answer token %r matches no option", token)
    return positions


def normalize_question(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Return a mapping in canonical question shape.

    ``raw`` uses storage column names (``question_text``, ``question_type``,
    ``options`` with ``option_text``) or canonical ones (``text``,
    ``type``). Unsupported types raise ``ValidationError``.
    """
    raw_type = str(raw.get("question_type", raw.get("type", ""))).strip().lower()
    if raw_type not in _TYPE_ALIASES:
        raise ValidationError(f"Question {raw.get('id')}: unsupported question type {raw_type!r}")
    qtype = _TYPE_ALIASES[raw_type]

    question: dict[str, Any] = {
        "id": raw["id"],
        "text": raw.get("question_text", raw.get("text", "")),
        "marks": raw.get("marks", raw.get("points", 1)),
        "explanation": raw.get("explanation"),
    }
    correct_answer = raw.get("correct_answer")

    if qtype == QuestionType.YES_NO:
        value = parse_yes_no(correct_answer)
        # Unrecognised values pass through so validation reports them
        question["type"] = QuestionType.YES_NO.value
        question["correct_answer"] = value.value if value is not None else correct_answer
        return question

    options = [
        {
            "id": o["id"],
            "text": o.get("option_text", o.get("text", "")),
            "is_correct": bool(o.get("is_correct", False)),
        }
        for o in raw.get("options") or []
    ]
    if not any(o["is_correct"] for o in options) and correct_answer:
        for position in _recover_correct_positions(options, str(correct_answer)):
            options[position]["is_correct"] = True

    if qtype is None:
        correct = sum(1 for o in options if o["is_correct"])
        qtype = QuestionType.MULTIPLE_CHOICE if correct > 1 else QuestionType.SINGLE_CHOICE

    question["type"] = qtype.value
    question["options"] = options
    return question


def normalize_answer(
    question_type: str,
    question_id: int,
    answer_text: str | None,
    selected_options: str | None,
) -> dict[str, Any]:
    """Turn a stored answer row into canonical ``Answer`` fields.

    A yes/no answer whose text is neither yes nor no, or a selection that
    is not a JSON list of ids, is corrupt and raises ``IntegrityError``.
    """
    answer: dict[str, Any] = {"question_id": question_id}
    canonical = _TYPE_ALIASES.get(str(question_type).strip().lower(), None)

    if canonical == QuestionType.YES_NO:
        if answer_text is None or not answer_text.strip():
            return answer
        value = parse_yes_no(answer_text)
        if value is None:
            raise IntegrityError(
                f"Answer {answer_text!r} to question {question_id} is not yes/no",
                question_id=question_id,
            )
        answer["value"] = value.value
        return answer

    if not selected_options:
        return answer
    try:
        selected = json.loads(selected_options)
    except json.JSONDecodeError:
        selected = None
    if not isinstance(selected, list):
        raise IntegrityError(
            f"Stored selection for question {question_id} is not a list of option ids",
            question_id=question_id,
        )
    try:
        answer["selected_option_ids"] = [int(item) for item in selected]
    except (TypeError, ValueError):
        raise IntegrityError(
            f"Stored selection for question {question_id} is not a list of option ids",
            question_id=question_id,
        ) from None
    return answer
