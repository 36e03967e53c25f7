from .session import InterviewSession, SessionEmailLog, SessionStatus
from .scoring_job import ScoringJob, JobStatus
from .score import Score
from .rubric import Rubric
from .transcript import TranscriptEntry

__all__ = [
    "InterviewSession",
    "SessionEmailLog",
    "SessionStatus",
    "ScoringJob",
    "JobStatus",
    "Score",
    "Rubric",
    "TranscriptEntry",
]
