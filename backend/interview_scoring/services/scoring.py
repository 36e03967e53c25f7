# backend/interview_scoring/services/scoring.py
# Turns a finished interview transcript into a rubric score using an LLM.
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..db import Database, utc_now
from ..models.rubric import Rubric
from ..models.score import Score
from ..models.transcript import TranscriptEntry

LOG = logging.getLogger("interview_scoring.scoring")

RECOMMENDATIONS = ("Strong Hire", "Hire", "Mixed", "No Hire")

DEFAULT_SYSTEM_PROMPT = """\
You are a calibrated interview evaluator. Score the transcript strictly
against the rubric you are given, using only evidence present in the
transcript.

Return a JSON object with:
  "scores": a list with one item per rubric dimension, each
      {"dimension": <name>, "score": <1-4 or null if not reached>,
       "feedback": {"strengths": [...], "weaknesses": [...],
                    "exemplar_response_suggestion": <string, optional>}}
  "overall_recommendation": one of "Strong Hire", "Hire", "Mixed", "No Hire"
  "summary_feedback": at most three sentences, second person.
"""


class ScoringError(Exception):
    pass


class ScoringEngineError(ScoringError):
    """The model call failed, timed out or returned unusable content."""


class ScorePersistenceError(ScoringError):
    """Loading inputs or saving the score failed in the database."""


class ScoringEngine(Protocol):
    async def score(self, session_id: str, rubric_id: str) -> Score:
        ...


def format_transcript(entries: List[TranscriptEntry]) -> str:
    return "\n\n".join(f"{e.role}: {e.content}" for e in entries)


def parse_llm_response(content: Optional[str]) -> Dict[str, Any]:
    if not content:
        raise ScoringEngineError("LLM returned no content")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise ScoringEngineError(f"LLM returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict) or not isinstance(parsed.get("scores"), list):
        raise ScoringEngineError("LLM response is missing the 'scores' list")
    return parsed


class LLMScoringEngine:
    def __init__(
        self,
        db: Database,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.3,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.db = db
        self.model = model
        self.temperature = temperature
        self.client = client or (AsyncOpenAI(api_key=api_key) if api_key else None)

    async def score(self, session_id: str, rubric_id: str) -> Score:
        LOG.info("Scoring started session=%s rubric=%s", session_id, rubric_id)
        if self.client is None:
            raise ScoringEngineError("OPENAI_API_KEY is not configured")

        rubric, entries = await self._load_inputs(session_id, rubric_id)
        transcript = format_transcript(entries)
        llm_response = await self._evaluate(session_id, rubric, transcript)

        score = Score(
            session_id=session_id,
            rubric_id=rubric_id,
            rubric_name=rubric.name,
            llm_response=llm_response,
            transcript_text=transcript,
            model_used=self.model,
            scored_at=utc_now(),
        )
        try:
            async with self.db.transaction() as s:
                s.add(score)
        except SQLAlchemyError as e:
            LOG.error("Saving score failed session=%s: %s", session_id, e)
            raise ScorePersistenceError(f"Failed to save score: {e}") from e

        LOG.info("Score saved session=%s score=%s", session_id, score.id)
        return score

    async def _load_inputs(self, session_id: str, rubric_id: str):
        try:
            async with self.db.session() as s:
                rubric = await s.get(Rubric, rubric_id)
                q = await s.execute(
                    select(TranscriptEntry)
                    .where(TranscriptEntry.session_id == session_id)
                    .order_by(TranscriptEntry.timestamp.asc(), TranscriptEntry.id.asc())
                )
                entries = list(q.scalars().all())
        except SQLAlchemyError as e:
            raise ScorePersistenceError(f"Failed to load scoring inputs: {e}") from e

        if rubric is None:
            raise ScorePersistenceError(f"Rubric not found for rubricId: {rubric_id}")
        if not entries:
            raise ScorePersistenceError(f"No transcripts found for sessionId: {session_id}")
        return rubric, entries

    async def _evaluate(self, session_id: str, rubric: Rubric, transcript: str) -> Dict[str, Any]:
        user_prompt = (
            "Please evaluate the following interview transcript against the provided rubric.\n\n"
            f"Rubric: {rubric.name}\n"
            f"{json.dumps(rubric.definition, indent=2)}\n\n"
            f"Interview transcript:\n{transcript}\n\n"
            "Respond ONLY with the JSON object described in your instructions."
        )
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": rubric.system_prompt or DEFAULT_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
        except OpenAIError as e:
            LOG.error("LLM call failed session=%s: %s", session_id, e)
            raise ScoringEngineError(str(e) or "LLM call failed") from e

        content = completion.choices[0].message.content if completion.choices else None
        parsed = parse_llm_response(content)
        LOG.info("LLM call succeeded session=%s model=%s", session_id, self.model)
        return parsed
