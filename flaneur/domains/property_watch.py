"""
Property watch: one-line summaries for user-submitted sightings.

Unpublished, unsummarised property sightings, storefront changes and
development projects are summarised with a confidence score. Rows at or
above the confidence threshold are published.
"""
from typing import Any, Callable, Dict, List, Optional

from flaneur.core.exceptions import ConfigurationException, QuotaExhaustedError
from flaneur.core.logging import get_logger
from flaneur.pipeline.context import PipelineContext
from flaneur.pipeline.execution_log import ExecutionLogger, run_succeeded
from flaneur.schemas.events import PropertySubmission, SubmissionKind, SubmissionTriage
from flaneur.schemas.pipeline import MAX_SUMMARY_ERRORS, PropertyWatchSummary, SubmissionCounts

logger = get_logger(__name__)

PROPERTY_WATCH_JOB = "process-property-watch"
SUBMISSION_LIMIT = 50

PROPERTY_WATCH_PERSONA = """You are a well-travelled, successful 35-year-old who has lived in the neighborhood for years. You write observant, street-level commentary about real estate and development changes as someone who walks these blocks daily.

Your style:
- Write as a long-time resident, never as a tourist or outsider
- Notice what others miss: scaffolding, for-sale signs, permits in windows
- Dry observations, not breathless real estate copy
- No "investment opportunity" or "charming" or "must-see"
- Skeptical of developer promises
- Never use em dashes
- Never explain what the neighborhood is. Assume the reader lives there."""

_TRIAGE_JSON = """Return JSON:
{
  "summary": "Your one-liner here",
  "is_notable": true/false,
  "confidence": 0.0-1.0
}"""


def _optional(label: str, value: Any) -> Optional[str]:
    return f"{label}: {value}" if value else None


def _price(value: Any, currency: str) -> Optional[str]:
    if not value:
        return None
    try:
        return f"Price: {currency}{float(value):,.0f}"
    except (TypeError, ValueError):
        return f"Price: {currency}{value}"


def sighting_prompt(submission: PropertySubmission, neighborhood: str, currency: str) -> str:
    f = submission.fields
    lines = [
        f"Write a one-liner (max 100 chars) about this property sighting in {neighborhood}:",
        "",
        f"Type: {f.get('sighting_type') or 'unknown'}",
        f"Address: {f.get('address') or f.get('location_description') or 'Unknown location'}",
        _price(f.get("asking_price"), currency),
        _optional("Notes", f.get("description")),
    ]
    return "\n".join(line for line in lines if line is not None) + "\n\n" + _TRIAGE_JSON


def storefront_prompt(submission: PropertySubmission, neighborhood: str, currency: str) -> str:
    f = submission.fields
    lines = [
        f"Write a one-liner (max 100 chars) about this storefront change in {neighborhood}:",
        "",
        f"Type: {f.get('change_type') or 'unknown'}",
        f"Address: {f.get('address') or 'Unknown location'}",
        f"Business: {f.get('business_name') or 'Unknown'}",
        _optional("Previously", f.get("previous_business_name")),
        _optional("Notes", f.get("description")),
    ]
    return "\n".join(line for line in lines if line is not None) + "\n\n" + _TRIAGE_JSON


def project_prompt(submission: PropertySubmission, neighborhood: str, currency: str) -> str:
    f = submission.fields
    lines = [
        f"Write a one-liner (max 120 chars) about this development in {neighborhood}:",
        "",
        f"Type: {f.get('project_type') or 'unknown'}",
        f"Status: {f.get('status') or 'unknown'}",
        f"Address: {f.get('address') or 'Unknown location'}",
        _optional("Floors", f.get("floors")),
        _optional("Units", f.get("units")),
        _optional("Notes", f.get("description")),
    ]
    return "\n".join(line for line in lines if line is not None) + "\n\n" + _TRIAGE_JSON


PROMPTS: Dict[str, Callable[[PropertySubmission, str, str], str]] = {
    "sighting": sighting_prompt,
    "storefront": storefront_prompt,
    "project": project_prompt,
}

# Storefront rows carry no notability column.
NOTABLE_COLUMN = {"sighting": True, "storefront": False, "project": True}

SUMMARY_FIELDS = {"sighting": "sightings", "storefront": "storefronts", "project": "projects"}


class PropertyWatchPipeline:
    """Summarise and publish pending property submissions."""

    job_name = PROPERTY_WATCH_JOB

    def __init__(self, context: PipelineContext, delay: float = 0.3, limit: int = SUBMISSION_LIMIT):
        self.context = context
        self.delay = delay
        self.limit = limit
        self.threshold = context.settings.sighting_confidence_threshold
        self._names: Dict[str, str] = {}
        self._currencies: Dict[str, str] = {}

    @property
    def dry_run(self) -> bool:
        return self.context.invoker is None

    async def _neighborhood_name(self, locale_id: str) -> str:
        if locale_id not in self._names:
            locale = await self.context.store.get_locale(locale_id)
            self._names[locale_id] = locale.name if locale else locale_id
        return self._names[locale_id]

    async def _currency(self, locale_id: str) -> str:
        if locale_id not in self._currencies:
            symbol = await self.context.store.property_currency_symbol(locale_id)
            self._currencies[locale_id] = symbol or "$"
        return self._currencies[locale_id]

    async def triage(self, submission: PropertySubmission) -> SubmissionTriage:
        """
        Generate the summary for one submission.

        Raises:
            GenerationParseError: the response holds no JSON object
            pydantic.ValidationError: the JSON lacks a usable summary
        """
        name = await self._neighborhood_name(submission.neighborhood_id)
        currency = await self._currency(submission.neighborhood_id) if submission.kind == "sighting" else "$"
        prompt = PROPERTY_WATCH_PERSONA + "\n\n" + PROMPTS[submission.kind](submission, name, currency)
        data = await self.context.invoker.generate_json(prompt, self.context.settings.gemini_fast_model)
        return SubmissionTriage.model_validate(data)

    def update_fields(self, kind: str, triage: SubmissionTriage) -> Dict[str, Any]:
        publish = triage.confidence >= self.threshold
        fields: Dict[str, Any] = {
            "ai_summary": triage.summary,
            "ai_confidence": triage.confidence,
            "is_published": publish,
            "published_at": self.context.now().isoformat() if publish else None,
        }
        if NOTABLE_COLUMN[kind]:
            fields["is_notable"] = triage.is_notable
        return fields

    async def _process_kind(self, kind: SubmissionKind, summary: PropertyWatchSummary) -> bool:
        """Process one table; returns False once the generation quota is spent."""
        counts: SubmissionCounts = getattr(summary, SUMMARY_FIELDS[kind])
        rows = await self.context.store.pending_submissions(kind, self.limit)
        counts.pending = len(rows)
        if self.dry_run:
            return True

        for index, row in enumerate(rows):
            submission = PropertySubmission(
                id=str(row.get("id")),
                kind=kind,
                neighborhood_id=row.get("neighborhood_id") or "",
                fields=row,
            )
            try:
                triage = await self.triage(submission)
                await self.context.store.update_submission(kind, submission.id, self.update_fields(kind, triage))
            except ConfigurationException:
                raise
            except QuotaExhaustedError as e:
                summary.errors.append(f"{kind.title()} {submission.id}: {e}")
                logger.warning("Generation quota exhausted, stopping", job_name=self.job_name, kind=kind)
                return False
            except Exception as e:
                logger.warning("Submission failed", kind=kind, submission_id=submission.id, error=str(e))
                summary.errors.append(f"{kind.title()} {submission.id}: {e}")
                continue

            counts.processed += 1
            if triage.confidence >= self.threshold:
                counts.published += 1
            if self.delay > 0 and index < len(rows) - 1:
                await self.context.sleep(self.delay)
        return True

    async def run(self, manual: bool = False) -> PropertyWatchSummary:
        """Triage all three submission tables once."""
        started = self.context.monotonic()
        summary = PropertyWatchSummary(success=True, dry_run=self.dry_run, timestamp=self.context.now())
        if self.dry_run:
            logger.info("Property watch dry run: no generation key configured")

        execution_logger = ExecutionLogger(self.context.store, enabled=not manual, now=self.context.now)
        async with execution_logger.track(self.job_name) as record:
            kinds: List[SubmissionKind] = ["sighting", "storefront", "project"]
            for kind in kinds:
                if not await self._process_kind(kind, summary):
                    break

            processed = summary.sightings.processed + summary.storefronts.processed + summary.projects.processed
            record.succeeded = processed
            record.failed = len(summary.errors)
            record.errors = list(summary.errors)
            record.response_data = summary.model_dump(include={"dry_run", "sightings", "storefronts", "projects"})

        summary.success = run_succeeded(processed, len(summary.errors))
        summary.errors = summary.errors[:MAX_SUMMARY_ERRORS]
        summary.elapsed_ms = int((self.context.monotonic() - started) * 1000)
        logger.info(
            "Property watch finished",
            dry_run=summary.dry_run,
            sightings=summary.sightings.processed,
            storefronts=summary.storefronts.processed,
            projects=summary.projects.processed,
            errors=len(summary.errors),
        )
        return summary
