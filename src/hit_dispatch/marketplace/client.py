"""Signed form-over-HTTP client for the requester API."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from hit_dispatch.marketplace.errors import DecodeError, InvalidResponse, TransportError
from hit_dispatch.marketplace.models import (
    Answered,
    Credentials,
    Invalid,
    Pending,
    PollResult,
    SearchFilter,
    TaskHandle,
    TaskSummary,
    WorkItem,
)
from hit_dispatch.marketplace.responses import (
    decode_answer,
    decode_assignments,
    decode_create_task,
    decode_search,
)
from hit_dispatch.marketplace.signing import RequestSigner, format_timestamp

DEFAULT_ENDPOINT_URL = "https://mechanicalturk.amazonaws.com/?Service=AWSMechanicalTurkRequester"
SANDBOX_ENDPOINT_URL = (
    "https://mechanicalturk.sandbox.amazonaws.com/?Service=AWSMechanicalTurkRequester"
)
SERVICE_NAME = "AWSMechanicalTurkRequester"
API_VERSION = "2012-03-25"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "hit-dispatch/1.0"
_BODY_PREVIEW_CHARS = 200

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class MarketplaceClient:
    """Issues signed requester operations and decodes their XML responses.

    The client never retries. ``create_task`` relies on the caller-supplied
    idempotency token for exactly-once creation across caller retries.
    The underlying ``httpx.Client`` is safe to share between threads.
    """

    def __init__(  # noqa: PLR0913
        self,
        credentials: Credentials,
        *,
        endpoint_url: str = DEFAULT_ENDPOINT_URL,
        service: str = SERVICE_NAME,
        version: str = API_VERSION,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.service = service
        self.version = version
        self._signer = RequestSigner(credentials)
        self._clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    def create_task(self, item: WorkItem) -> TaskHandle:
        params = {
            "Title": item.title,
            "Description": item.description,
            "Question": item.body_xml,
            "Reward.1.Amount": item.reward_amount,
            "Reward.1.CurrencyCode": item.reward_currency,
            "AssignmentDurationInSeconds": str(item.assignment_duration_seconds),
            "LifetimeInSeconds": str(item.task_lifetime_seconds),
            "Keywords": ",".join(item.keywords),
            "AutoApprovalDelayInSeconds": str(item.auto_approval_delay_seconds),
            "RequesterAnnotation": item.external_id,
            "UniqueRequestToken": item.idempotency_token,
            "ResponseGroup": item.response_group,
        }
        if item.hit_type_id:
            params["HITTypeId"] = item.hit_type_id

        envelope = decode_create_task(self._execute("CreateHIT", params))
        if not envelope.status.is_valid:
            raise InvalidResponse(
                message=f"CreateHIT rejected for {item.external_id}: {envelope.status.reason}",
                code="create_rejected",
                error_codes=envelope.status.error_codes,
            )
        if not envelope.task_id:
            raise DecodeError(message="CreateHIT response carried no HITId", code="missing_task_id")
        return TaskHandle(
            task_id=envelope.task_id,
            created_at=_parse_creation_time(envelope.creation_time) or self._clock(),
            hit_type_id=envelope.hit_type_id or item.hit_type_id,
            lifetime_seconds=item.task_lifetime_seconds,
        )

    def get_task_result(
        self,
        task_id: str,
        *,
        question_identifier: str | None = None,
    ) -> PollResult:
        """Fetch the submitted assignment for a task, if any.

        Returns ``Invalid`` when the envelope's validity flag is false and
        ``Pending`` when no assignment carries an answer yet. Raises
        ``AnswerDecodeError`` when the nested answer document is malformed.
        """

        envelope = decode_assignments(self._execute("GetAssignmentsForHIT", {"HITId": task_id}))
        if not envelope.status.is_valid:
            return Invalid(reason=envelope.status.reason)

        for assignment in envelope.assignments:
            if not assignment.answer_xml or not assignment.answer_xml.strip():
                continue
            document = decode_answer(assignment.answer_xml)
            return Answered(text=document.free_text(question_identifier))
        return Pending()

    def search_tasks(self, search_filter: SearchFilter | None = None) -> list[TaskSummary]:
        params = search_filter.to_params() if search_filter is not None else {}
        envelope = decode_search(self._execute("SearchHITs", params))
        if not envelope.status.is_valid:
            raise InvalidResponse(
                message=f"SearchHITs rejected: {envelope.status.reason}",
                code="search_rejected",
                error_codes=envelope.status.error_codes,
            )
        return envelope.tasks

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> MarketplaceClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _execute(self, operation: str, params: dict[str, str]) -> bytes:
        self._signer.sign_operation(
            params,
            service=self.service,
            operation=operation,
            version=self.version,
            timestamp=format_timestamp(self._clock()),
        )
        try:
            response = self._client.post(self.endpoint_url, data=params)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout calling %s", operation)
            raise TransportError(message=f"{operation} timed out", code="timeout") from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error calling %s: %s", operation, exc)
            raise TransportError(message=f"{operation} failed: {exc}", code="transport") from exc

        logger.debug("%s returned HTTP %s: %s", operation, response.status_code, response.text)
        if not response.is_success:
            raise TransportError(
                message=(
                    f"{operation} returned HTTP {response.status_code}: "
                    f"{response.text[:_BODY_PREVIEW_CHARS]}"
                ),
                code=str(response.status_code),
                status_code=response.status_code,
            )
        return response.content


def _parse_creation_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
