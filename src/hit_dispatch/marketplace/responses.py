"""XML response decoding for marketplace operations.

Assignment answers arrive as an escaped XML document embedded in the text of
the outer ``Answer`` element. Decoding is therefore split into two explicit
stages so a broken envelope (``DecodeError``) is told apart from a broken
answer payload (``AnswerDecodeError``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException, ElementTree

from hit_dispatch.marketplace.errors import AnswerDecodeError, DecodeError
from hit_dispatch.marketplace.models import QueueMessage, TaskSummary

_TRUE_VALUES = frozenset({"true", "1"})


@dataclass(frozen=True, slots=True)
class RemoteError:
    code: str
    message: str


@dataclass(frozen=True, slots=True)
class RequestStatus:
    """Validity flag plus any errors the marketplace attached to it."""

    is_valid: bool
    errors: tuple[RemoteError, ...] = ()

    @property
    def reason(self) -> str:
        if self.errors:
            return "; ".join(f"{error.code}: {error.message}" for error in self.errors)
        if self.is_valid:
            return ""
        return "request marked invalid without error details"

    @property
    def error_codes(self) -> tuple[str, ...]:
        return tuple(error.code for error in self.errors)


@dataclass(slots=True)
class CreateTaskEnvelope:
    status: RequestStatus
    task_id: str | None
    hit_type_id: str | None
    creation_time: str | None
    request_id: str | None


@dataclass(slots=True)
class Assignment:
    assignment_id: str | None
    worker_id: str | None
    task_id: str | None
    status: str | None
    submit_time: str | None
    answer_xml: str | None


@dataclass(slots=True)
class AssignmentsEnvelope:
    status: RequestStatus
    num_results: int
    total_num_results: int
    page_number: int
    assignments: list[Assignment] = field(default_factory=list)
    request_id: str | None = None


@dataclass(frozen=True, slots=True)
class QuestionAnswer:
    question_identifier: str | None
    free_text: str | None


@dataclass(slots=True)
class AnswerDocument:
    """Decoded ``QuestionFormAnswers`` payload."""

    answers: list[QuestionAnswer] = field(default_factory=list)

    def free_text(self, question_identifier: str | None = None) -> str:
        """First free-text answer, optionally for one question only."""

        for answer in self.answers:
            if question_identifier not in (None, answer.question_identifier):
                continue
            if answer.free_text is not None:
                return answer.free_text
        return ""


@dataclass(slots=True)
class SearchEnvelope:
    status: RequestStatus
    num_results: int
    total_num_results: int
    page_number: int
    tasks: list[TaskSummary] = field(default_factory=list)


@dataclass(slots=True)
class ReceiveMessageEnvelope:
    messages: list[QueueMessage] = field(default_factory=list)
    request_id: str | None = None


def decode_create_task(raw: bytes | str) -> CreateTaskEnvelope:
    root = _parse(raw, expected_root="CreateHITResponse")
    hit = _find(root, "HIT")
    container = hit if hit is not None else root
    return CreateTaskEnvelope(
        status=_request_status(root, container),
        task_id=_child_text(container, "HITId"),
        hit_type_id=_child_text(container, "HITTypeId"),
        creation_time=_child_text(container, "CreationTime"),
        request_id=_request_id(root),
    )


def decode_assignments(raw: bytes | str) -> AssignmentsEnvelope:
    """First stage: the ``GetAssignmentsForHIT`` envelope, answers left encoded."""

    root = _parse(
        raw,
        expected_root=("GetAssignmentsForHITResponse", "GetAssignmentsForHITResult"),
    )
    result = root if _local_name(root.tag) == "getassignmentsforhitresult" else None
    if result is None:
        result = _find(root, "GetAssignmentsForHITResult")
    if result is None:
        return AssignmentsEnvelope(
            status=_request_status(root, root),
            num_results=0,
            total_num_results=0,
            page_number=0,
            request_id=_request_id(root),
        )

    assignments = [
        Assignment(
            assignment_id=_child_text(element, "AssignmentId"),
            worker_id=_child_text(element, "WorkerId"),
            task_id=_child_text(element, "HITId"),
            status=_child_text(element, "AssignmentStatus"),
            submit_time=_child_text(element, "SubmitTime"),
            answer_xml=_child_text(element, "Answer", strip=False),
        )
        for element in _children(result, "Assignment")
    ]
    return AssignmentsEnvelope(
        status=_request_status(root, result),
        num_results=_child_int(result, "NumResults"),
        total_num_results=_child_int(result, "TotalNumResults"),
        page_number=_child_int(result, "PageNumber"),
        assignments=assignments,
        request_id=_request_id(root),
    )


def decode_answer(answer_xml: str) -> AnswerDocument:
    """Second stage: the ``QuestionFormAnswers`` document carried inside ``Answer``."""

    try:
        root = _parse(answer_xml, expected_root="QuestionFormAnswers")
    except DecodeError as error:
        raise AnswerDecodeError(message=error.message, code="invalid_answer_xml") from error
    answers = [
        QuestionAnswer(
            question_identifier=_child_text(element, "QuestionIdentifier"),
            free_text=_child_text(element, "FreeText"),
        )
        for element in _children(root, "Answer")
    ]
    return AnswerDocument(answers=answers)


def decode_search(raw: bytes | str) -> SearchEnvelope:
    root = _parse(raw, expected_root="SearchHITsResponse")
    result = _find(root, "SearchHITsResult")
    container = result if result is not None else root
    tasks = [
        TaskSummary(
            task_id=_child_text(element, "HITId") or "",
            hit_type_id=_child_text(element, "HITTypeId"),
            title=_child_text(element, "Title"),
            description=_child_text(element, "Description"),
            status=_child_text(element, "HITStatus"),
            creation_time=_child_text(element, "CreationTime"),
            expiration=_child_text(element, "Expiration"),
            assignments_pending=_child_int(element, "NumberOfAssignmentsPending"),
            assignments_available=_child_int(element, "NumberOfAssignmentsAvailable"),
            assignments_completed=_child_int(element, "NumberOfAssignmentsCompleted"),
        )
        for element in _children(container, "HIT")
    ]
    return SearchEnvelope(
        status=_request_status(root, container),
        num_results=_child_int(container, "NumResults"),
        total_num_results=_child_int(container, "TotalNumResults"),
        page_number=_child_int(container, "PageNumber"),
        tasks=tasks,
    )


def decode_receive_message(raw: bytes | str) -> ReceiveMessageEnvelope:
    root = _parse(raw, expected_root="ReceiveMessageResponse")
    result = _find(root, "ReceiveMessageResult")
    messages: list[QueueMessage] = []
    if result is not None:
        for element in _children(result, "Message"):
            attributes: dict[str, str] = {}
            for attribute in _children(element, "Attribute"):
                name = _child_text(attribute, "Name")
                if name:
                    attributes[name] = _child_text(attribute, "Value") or ""
            messages.append(
                QueueMessage(
                    message_id=_child_text(element, "MessageId") or "",
                    receipt_handle=_child_text(element, "ReceiptHandle") or "",
                    body=_child_text(element, "Body", strip=False) or "",
                    md5_of_body=_child_text(element, "MD5OfBody"),
                    attributes=attributes,
                ),
            )
    metadata = _find(root, "ResponseMetadata")
    return ReceiveMessageEnvelope(
        messages=messages,
        request_id=_child_text(metadata, "RequestId") if metadata is not None else None,
    )


def _parse(raw: bytes | str, *, expected_root: str | tuple[str, ...]) -> Element:
    data = (raw.encode("utf-8") if isinstance(raw, str) else raw).strip()
    if not data:
        raise DecodeError(message="Empty XML document", code="empty_xml")
    try:
        root = ElementTree.fromstring(data)
    except (ElementTree.ParseError, DefusedXmlException) as error:
        raise DecodeError(message=f"Malformed XML: {error}", code="invalid_xml") from error

    expected = (expected_root,) if isinstance(expected_root, str) else expected_root
    root_name = _local_name(root.tag)
    if root_name not in {name.lower() for name in expected}:
        raise DecodeError(
            message=f"Unexpected root element {root.tag!r}, expected {' or '.join(expected)}",
            code="unexpected_root",
        )
    return root


def _request_status(root: Element, container: Element) -> RequestStatus:
    errors = tuple(
        RemoteError(
            code=_child_text(element, "Code") or "unknown",
            message=_child_text(element, "Message") or "",
        )
        for element in root.iter()
        if _local_name(element.tag) == "error"
    )
    request = _find(container, "Request")
    if request is None:
        request = _find(root, "Request")
    if request is None:
        return RequestStatus(is_valid=False, errors=errors)
    raw_flag = (_child_text(request, "IsValid") or "").lower()
    return RequestStatus(is_valid=raw_flag in _TRUE_VALUES, errors=errors)


def _request_id(root: Element) -> str | None:
    operation_request = _find(root, "OperationRequest")
    if operation_request is None:
        return None
    return _child_text(operation_request, "RequestId")


def _find(element: Element, name: str) -> Element | None:
    target = name.lower()
    for candidate in element.iter():
        if candidate is element:
            continue
        if _local_name(candidate.tag) == target:
            return candidate
    return None


def _children(element: Element, name: str) -> list[Element]:
    target = name.lower()
    return [child for child in element if _local_name(child.tag) == target]


def _child_text(element: Element, name: str, *, strip: bool = True) -> str | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) != target:
            continue
        text = "".join(child.itertext())
        if strip:
            text = text.strip()
        return text or None
    return None


def _child_int(element: Element, name: str) -> int:
    value = _child_text(element, name)
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1].lower()
    return tag.lower()
