"""Question documents sent as the ``Question`` parameter of a task."""

from __future__ import annotations

from dataclasses import dataclass
from xml.etree.ElementTree import Element, SubElement, tostring

QUESTION_FORM_SCHEMA_URL = (
    "http://mechanicalturk.amazonaws.com/AWSMechanicalTurkDataSchemas/"
    "2005-10-01/QuestionForm.xsd"
)
HTML_QUESTION_SCHEMA_URL = (
    "http://mechanicalturk.amazonaws.com/AWSMechanicalTurkDataSchemas/"
    "2011-11-11/HTMLQuestion.xsd"
)
MAX_QUESTION_SIZE = 65_535
DEFAULT_FRAME_HEIGHT = 100
_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


@dataclass(frozen=True, slots=True)
class FreeTextQuestion:
    """Single free-text question for a ``QuestionForm`` document."""

    identifier: str
    display_name: str
    text: str
    is_required: bool = True
    min_length: int = 1
    max_length: int = 140
    default_text: str = ""
    number_of_lines: int = 1


def build_question_form(question: FreeTextQuestion) -> str:
    form = Element("QuestionForm", {"xmlns": QUESTION_FORM_SCHEMA_URL})
    node = SubElement(form, "Question")
    SubElement(node, "QuestionIdentifier").text = question.identifier
    SubElement(node, "DisplayName").text = question.display_name
    SubElement(node, "IsRequired").text = "true" if question.is_required else "false"
    content = SubElement(node, "QuestionContent")
    SubElement(content, "Text").text = question.text

    free_text = SubElement(SubElement(node, "AnswerSpecification"), "FreeTextAnswer")
    constraints = SubElement(free_text, "Constraints")
    SubElement(
        constraints,
        "Length",
        {"minLength": str(question.min_length), "maxLength": str(question.max_length)},
    )
    if question.default_text:
        SubElement(free_text, "DefaultText").text = question.default_text
    SubElement(free_text, "NumberOfLinesSuggestion").text = str(question.number_of_lines)
    return _serialize(form)


def build_html_question(html_content: str, *, frame_height: int = DEFAULT_FRAME_HEIGHT) -> str:
    """Wrap a complete HTML page into an ``HTMLQuestion`` document."""

    if frame_height <= 0:
        raise ValueError(f"frame_height must be positive, got {frame_height}")
    question = Element("HTMLQuestion", {"xmlns": HTML_QUESTION_SCHEMA_URL})
    SubElement(question, "HTMLContent").text = html_content
    SubElement(question, "FrameHeight").text = str(frame_height)
    return _serialize(question)


def _serialize(root: Element) -> str:
    document = _XML_DECLARATION + tostring(root, encoding="unicode")
    size = len(document.encode("utf-8"))
    if size > MAX_QUESTION_SIZE:
        raise ValueError(
            f"Question document is {size} bytes, the marketplace accepts at most "
            f"{MAX_QUESTION_SIZE}.",
        )
    return document
