"""Per-attempt presentation order.

Order is a pure function of ``(quiz, seed)`` so a reloaded attempt shows
exactly the same sequence. Each shuffle draws from its own ``random.Random``
seeded with a scoped string; string seeds hash with SHA-512 and do not
depend on ``PYTHONHASHSEED``.
"""

from __future__ import annotations

import random

from quizgrade.schemas.attempt import PresentationOrder
from quizgrade.schemas.quiz import Quiz, YesNoQuestion


def _rng(seed: int | str, scope: str) -> random.Random:
    return random.Random(f"{seed}|{scope}")


def derive(quiz: Quiz, attempt_seed: int | str) -> PresentationOrder:
    """Return question order and per-question option order for one attempt.

    Questions are shuffled iff ``randomize_questions``; options of choice
    questions iff ``randomize_options``. Option order of a question does not
    depend on where that question lands, so toggling one flag never changes
    the other sequence. The quiz itself is left untouched.
    """
    question_ids = [q.id for q in quiz.questions]
    if quiz.randomize_questions:
        _rng(attempt_seed, "questions").shuffle(question_ids)

    option_ids: dict[int, tuple[int, ...]] = {}
    for question in quiz.questions:
        if isinstance(question, YesNoQuestion):
            continue
        ids = [o.id for o in question.options]
        if quiz.randomize_options:
            _rng(attempt_seed, f"options:{question.id}").shuffle(ids)
        option_ids[question.id] = tuple(ids)

    return PresentationOrder(question_ids=tuple(question_ids), option_ids=option_ids)
