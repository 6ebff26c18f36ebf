"""Task body renderers producing the ``Question`` document for a draft."""

from __future__ import annotations

from html import escape
from typing import Protocol, runtime_checkable

from hit_dispatch.dispatch.models import TaskDraft
from hit_dispatch.marketplace.questions import (
    DEFAULT_FRAME_HEIGHT,
    FreeTextQuestion,
    build_html_question,
    build_question_form,
)

ANSWER_FIELD = "answer"
EXTERNAL_SUBMIT_URL = "https://www.mturk.com/mturk/externalSubmit"
SANDBOX_EXTERNAL_SUBMIT_URL = "https://workersandbox.mturk.com/mturk/externalSubmit"

HTML_TASK_PAGE = """\
<!DOCTYPE html>
<html>
<head>
<meta http-equiv="Content-Type" content="text/html; charset=UTF-8"/>
<script type="text/javascript" src="https://s3.amazonaws.com/mturk-public/externalHIT_v1.js"></script>
</head>
<body>
<form name="mturk_form" method="post" id="mturk_form" action="{submit_url}">
<input type="hidden" value="" name="assignmentId" id="assignmentId"/>
<h1>{title}</h1>
<p>{description}</p>
<div>{content}</div>
<p><textarea name="{answer_field}" cols="40" rows="2"></textarea></p>
<p><input type="submit" id="submitButton" value="Submit"/></p>
</form>
<script language="Javascript">turkSetAssignmentID();</script>
</body>
</html>
"""


@runtime_checkable
class TaskBodyRenderer(Protocol):
    """Renders a draft into a serialized question document."""

    answer_field: str

    def render(self, draft: TaskDraft) -> str:
        raise NotImplementedError


class FreeTextQuestionRenderer:
    """Renders drafts as a one-question free-text ``QuestionForm``."""

    def __init__(
        self,
        *,
        answer_field: str = ANSWER_FIELD,
        max_length: int = 140,
        number_of_lines: int = 1,
    ) -> None:
        self.answer_field = answer_field
        self.max_length = max_length
        self.number_of_lines = number_of_lines

    def render(self, draft: TaskDraft) -> str:
        return build_question_form(
            FreeTextQuestion(
                identifier=self.answer_field,
                display_name=draft.display_name or draft.title,
                text=draft.content,
                max_length=self.max_length,
                number_of_lines=self.number_of_lines,
            ),
        )


class HtmlQuestionRenderer:
    """Renders drafts as an embedded HTML page with a single answer box.

    ``draft.content`` is inserted verbatim so callers can embed markup such
    as a post preview; title and description are escaped.
    """

    def __init__(
        self,
        *,
        answer_field: str = ANSWER_FIELD,
        frame_height: int = DEFAULT_FRAME_HEIGHT,
        submit_url: str = EXTERNAL_SUBMIT_URL,
    ) -> None:
        self.answer_field = answer_field
        self.frame_height = frame_height
        self.submit_url = submit_url

    def render(self, draft: TaskDraft) -> str:
        page = HTML_TASK_PAGE.format(
            submit_url=escape(self.submit_url),
            title=escape(draft.display_name or draft.title),
            description=escape(draft.description),
            content=draft.content,
            answer_field=escape(self.answer_field),
        )
        return build_html_question(page, frame_height=self.frame_height)
