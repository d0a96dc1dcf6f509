"""Editable form held on the authoring side.

:class:`FormDraft` keeps question ``order`` dense while questions are
added, removed and moved, and hands every change to a
:class:`quizforms.autosave.DebouncedSaver`.  An explicit :meth:`save`
cancels any waiting autosave and waits for one already in flight, so the
two never race.
"""

import logging
from typing import Any, Optional

from quizforms.autosave import DebouncedSaver
from quizforms.questions import (
    FREE_TEXT,
    MULTI_CHOICE,
    SINGLE_CHOICE,
    FreeTextQuestion,
    MultiChoiceQuestion,
    SingleChoiceQuestion,
    dump_questions,
    new_question_id,
    parse_questions,
    renumber,
)
from quizforms.validation import find_problem

logger = logging.getLogger(__name__)

_FACTORIES = {
    SINGLE_CHOICE: (SingleChoiceQuestion, {"options": [], "correct_answer": 0}),
    MULTI_CHOICE: (MultiChoiceQuestion, {"options": [], "correct_answer": []}),
    FREE_TEXT: (FreeTextQuestion, {"correct_answer": None}),
}

SETTINGS = ("require_login", "one_submission_only", "enable_timer", "timer_minutes")


class FormDraft:
    def __init__(self, client, form_id: Optional[int] = None, saver: Optional[DebouncedSaver] = None):
        self.client = client
        self.form_id = form_id
        self.title = ""
        self.description = ""
        self.status = "draft"
        self.questions: list = []
        self.settings: dict[str, Any] = {
            "require_login": False,
            "one_submission_only": False,
            "enable_timer": False,
            "timer_minutes": 30,
        }
        self.saver = saver or DebouncedSaver(self._autosave)

    @classmethod
    def from_form(cls, client, form: dict, saver: Optional[DebouncedSaver] = None) -> "FormDraft":
        """Load a form as returned by the API and start autosaving."""
        draft = cls(client, form_id=form.get("id"), saver=saver)
        draft.title = form.get("title", "")
        draft.description = form.get("description", "")
        draft.status = form.get("status", "draft")
        draft.questions = renumber(parse_questions(form.get("questions")))
        for name in SETTINGS:
            if name in form:
                draft.settings[name] = form[name]
        draft.saver.mark_initialized()
        return draft

    def payload(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "questions": dump_questions(self.questions),
            **self.settings,
        }

    def _changed(self) -> None:
        self.saver.schedule(self.payload())

    def set_title(self, title: str) -> None:
        self.title = title
        self._changed()

    def set_description(self, description: str) -> None:
        self.description = description
        self._changed()

    def update_settings(self, **settings) -> None:
        unknown = set(settings) - set(SETTINGS)
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        self.settings.update(settings)
        self._changed()

    def add_question(self, question_type: str, **fields):
        if question_type not in _FACTORIES:
            raise ValueError(f"unknown question type {question_type!r}")
        fields.setdefault("id", new_question_id())
        fields["order"] = len(self.questions)
        cls, defaults = _FACTORIES[question_type]
        question = cls(**{**defaults, **fields})
        self.questions.append(question)
        self._changed()
        return question

    def update_question(self, index: int, **changes):
        current = self.questions[index]
        changes.pop("order", None)
        data = {**current.model_dump(), **changes}
        self.questions[index] = parse_questions([data])[0]
        self._changed()
        return self.questions[index]

    def remove_question(self, index: int) -> None:
        del self.questions[index]
        self.questions = renumber(self.questions)
        self._changed()

    def move_question(self, old_index: int, new_index: int) -> None:
        question = self.questions.pop(old_index)
        self.questions.insert(new_index, question)
        self.questions = renumber(self.questions)
        self._changed()

    async def _autosave(self, payload: dict) -> None:
        problem = find_problem(payload["title"], parse_questions(payload["questions"]))
        if problem:
            logger.debug("Not autosaving incomplete draft: %s", problem.code)
            return
        if self.form_id is None:
            created = await self.client.create_form(payload)
            self.form_id = created["id"]
            return
        await self.client.autosave_form(self.form_id, payload)

    async def save(self) -> dict:
        """Explicit save; errors reach the caller."""
        self.saver.cancel()
        await self.saver.wait_in_flight()
        payload = self.payload()
        if self.form_id is None:
            form = await self.client.create_form(payload)
            self.form_id = form["id"]
        else:
            form = await self.client.save_form(self.form_id, payload)
        self.saver.mark_initialized()
        return form
