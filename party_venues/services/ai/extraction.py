"""Extraction service turning scraped pages into structured venue data."""

import asyncio
import json
import logging
from dataclasses import dataclass
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from party_venues.core.enums import ExtractionErrorKind, QueueStatus
from party_venues.core.schema import ExtractionResult
from party_venues.db.repositories import QueueRepository
from party_venues.ingestion.cleaner import prepare_content
from party_venues.ingestion.config import ExtractionConfig
from party_venues.services.ai.client import (
    AIClient,
    AIClientError,
    create_client_from_env,
    sanitize_extraction_response,
    strip_code_fences,
)
from party_venues.services.ai.prompts import PROMPT_VERSION, build_extraction_prompt

logger = logging.getLogger(__name__)


@dataclass
class ExtractionOutcome:
    """Result of an extraction attempt."""

    success: bool
    item_id: UUID | None = None
    result: ExtractionResult | None = None
    raw_response: str | None = None
    error_kind: ExtractionErrorKind | None = None
    error_message: str | None = None
    claimed: bool = True

    @property
    def stored_error(self) -> str | None:
        """Error text as written to the queue item."""
        if self.error_message is None:
            return None
        if self.error_kind is None:
            return self.error_message
        return f"[{self.error_kind.value}] {self.error_message}"


def parse_extraction_response(raw_response: str) -> ExtractionOutcome:
    """
    Parse and validate a model response.

    Surrounding markdown code fences are tolerated. Invalid JSON is a parse
    error, JSON that does not fit the schema is a schema error, and a valid
    result without a named venue is a no_venue error.

    Args:
        raw_response: The raw text returned by the model.

    Returns:
        ExtractionOutcome with the validated result or error details.
    """
    json_str = strip_code_fences(raw_response)

    try:
        parsed_json = json.loads(json_str)
    except json.JSONDecodeError as e:
        return ExtractionOutcome(
            success=False,
            raw_response=raw_response,
            error_kind=ExtractionErrorKind.PARSE,
            error_message=f"JSON parse error: {e}",
        )

    if not isinstance(parsed_json, dict):
        return ExtractionOutcome(
            success=False,
            raw_response=raw_response,
            error_kind=ExtractionErrorKind.SCHEMA,
            error_message=f"Expected a JSON object, got {type(parsed_json).__name__}",
        )

    # The model often returns null for string/list fields; our schema expects ""/[]
    sanitized_json = sanitize_extraction_response(parsed_json)

    try:
        result = ExtractionResult.model_validate(sanitized_json)
    except ValidationError as e:
        return ExtractionOutcome(
            success=False,
            raw_response=raw_response,
            error_kind=ExtractionErrorKind.SCHEMA,
            error_message=f"Validation error: {e.error_count()} error(s): {_summarize(e)}",
        )

    if not result.has_venue:
        return ExtractionOutcome(
            success=False,
            raw_response=raw_response,
            result=result,
            error_kind=ExtractionErrorKind.NO_VENUE,
            error_message="No venue information found",
        )

    return ExtractionOutcome(success=True, raw_response=raw_response, result=result)


def _summarize(error: ValidationError) -> str:
    parts = []
    for err in error.errors()[:3]:
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class ExtractionService:
    """Service for extracting structured venue data from scraped queue items."""

    def __init__(
        self,
        session: Session,
        ai_client: AIClient | None = None,
        config: ExtractionConfig | None = None,
    ):
        """
        Initialize the extraction service.

        Args:
            session: SQLAlchemy database session.
            ai_client: Optional pre-configured AI client. If not provided,
                      will be created from environment variables.
            config: Extraction settings (defaults apply when omitted).
        """
        self.session = session
        self.queue_repo = QueueRepository(session)
        self.config = config or ExtractionConfig()
        self._ai_client = ai_client

    @property
    def ai_client(self) -> AIClient:
        """Get or create the AI client from environment variables."""
        if self._ai_client is None:
            self._ai_client = create_client_from_env(
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        return self._ai_client

    def run_model(self, content: str, source_url: str | None = None) -> ExtractionOutcome:
        """
        Prompt the model with cleaned page text and parse its answer.

        Blocking; no database access.
        """
        prompt = build_extraction_prompt(content, source_url)
        try:
            raw_response = self.ai_client.complete(prompt)
        except AIClientError as e:
            return ExtractionOutcome(
                success=False,
                error_kind=ExtractionErrorKind.API,
                error_message=str(e),
            )
        return parse_extraction_response(raw_response)

    async def extract_item(self, item_id: UUID | str) -> ExtractionOutcome:
        """
        Claim a scraped item, extract it and record the outcome.

        On success the item moves to review with its extracted data and
        confidence. Any failure moves it to failed with the error recorded.

        Args:
            item_id: The queue item ID.

        Returns:
            ExtractionOutcome describing what happened.
        """
        item = self.queue_repo.get_by_id(item_id)
        if item is None:
            return ExtractionOutcome(
                success=False, claimed=False, error_message=f"Queue item {item_id} not found"
            )

        if not self.queue_repo.claim(item.id, QueueStatus.SCRAPED):
            return ExtractionOutcome(
                success=False,
                item_id=item.id,
                claimed=False,
                error_message=f"Queue item {item.id} is not awaiting extraction",
            )
        # Release the write lock while the model call runs
        self.session.commit()

        content = prepare_content(item.raw_content or "", self.config.max_content_chars)
        if not content:
            outcome = ExtractionOutcome(
                success=False,
                error_kind=ExtractionErrorKind.NO_VENUE,
                error_message="No text content after cleaning",
            )
        else:
            logger.info(f"Extracting {item.url} ({len(content)} chars, prompt v{PROMPT_VERSION})")
            try:
                outcome = await asyncio.to_thread(
                    self.run_model, content, item.source_page_url or item.url
                )
            except Exception as e:
                logger.exception(f"Unexpected error extracting {item.url}")
                outcome = ExtractionOutcome(
                    success=False,
                    error_kind=ExtractionErrorKind.API,
                    error_message=str(e),
                )

        outcome.item_id = item.id
        if outcome.success and outcome.result is not None:
            self.queue_repo.mark_review(
                item.id,
                outcome.result.model_dump(mode="json"),
                outcome.result.confidence_score,
            )
            logger.info(
                f"Extracted '{outcome.result.venue.name}' with "
                f"{len(outcome.result.packages)} package(s), "
                f"confidence={outcome.result.confidence_score:.2f}"
            )
        else:
            self.queue_repo.mark_failed(item.id, outcome.stored_error or "Extraction failed")
            logger.warning(f"Extraction failed for {item.url}: {outcome.stored_error}")

        return outcome
