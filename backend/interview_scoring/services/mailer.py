# backend/interview_scoring/services/mailer.py
import html
import logging
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Protocol

import aiosmtplib

from ..config import Settings
from ..db import Database
from ..models.score import Score
from .results import latest_score

LOG = logging.getLogger("interview_scoring.mailer")

SUBJECT = "Your interview feedback - where you shined & what to work on"


class EmailSender(Protocol):
    async def send_results(self, session_id: str, recipient_email: str, user_name: Optional[str] = None) -> bool:
        ...


def score_emoji(score: Optional[float]) -> str:
    if score is None:
        return "\U0001F914"
    if score >= 3.5:
        return "\U0001F389"
    if score >= 3:
        return "\U0001F60A"
    if score >= 2:
        return "\U0001F610"
    return "\U0001F61F"


def build_report(score: Score, app_url: str) -> Dict[str, Any]:
    """Flatten a stored score into what the email template needs."""
    llm = score.llm_response or {}
    skills = []
    for item in llm.get("scores") or []:
        if not isinstance(item, dict):
            continue
        feedback = item.get("feedback") or {}
        value = item.get("score")
        skills.append({
            "name": str(item.get("dimension") or "Unnamed skill"),
            "score": value,
            "emoji": score_emoji(value if isinstance(value, (int, float)) else None),
            "strengths": list(feedback.get("strengths") or []),
            "weaknesses": list(feedback.get("weaknesses") or []),
            "suggestion": feedback.get("exemplar_response_suggestion"),
        })
    return {
        "recommendation": llm.get("overall_recommendation") or "N/A",
        "interview_type": score.rubric_name or "General Interview",
        "date": score.scored_at.strftime("%Y-%m-%d") if score.scored_at else "",
        "summary": llm.get("summary_feedback") or "No summary provided.",
        "skills": skills,
        "session_link": f"{app_url.rstrip('/')}/results/{score.session_id}",
    }


def _bullets(title: str, items: List[str]) -> str:
    if not items:
        return ""
    lis = "".join(f"<li>{html.escape(str(i))}</li>" for i in items)
    return f"<p><strong>{title}</strong></p><ul>{lis}</ul>"


def render_results_html(user_name: Optional[str], report: Dict[str, Any]) -> str:
    greeting = f"Hey {html.escape(user_name)}," if user_name else "Hey,"

    if report["skills"]:
        rows = "".join(
            f"<tr><td>{html.escape(s['name'])}</td>"
            f"<td style=\"text-align:right\">{s['emoji']} "
            f"{s['score'] if s['score'] is not None else 'N/A'}/4</td></tr>"
            for s in report["skills"]
        )
        glance = f"<table style=\"width:100%\"><tr><th>Skill</th><th>Score</th></tr>{rows}</table>"
        details = "".join(
            f"<h4>{s['emoji']} {html.escape(s['name'])}</h4>"
            + _bullets("What went well:", s["strengths"])
            + _bullets("Areas for improvement:", s["weaknesses"])
            + (f"<p><em>{html.escape(str(s['suggestion']))}</em></p>" if s["suggestion"] else "")
            for s in report["skills"]
        )
    else:
        glance = "<p>No skill scores available.</p>"
        details = "<p>No detailed skill feedback available.</p>"

    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333333;">
        <p>{greeting}</p>
        <p>Here's how your {html.escape(report['interview_type'])} interview on {report['date']} went.</p>
        <h2>Summary</h2>
        <p>{html.escape(report['summary'])}</p>
        <p><strong>Overall:</strong> {html.escape(str(report['recommendation']))}</p>
        <h2>Your skills at a glance</h2>
        {glance}
        <h2>Detailed breakdown</h2>
        {details}
        <p><a href="{html.escape(report['session_link'])}">View your full results online</a></p>
      </body>
    </html>
    """


class SMTPResultsEmailSender:
    """
    Sends the results email over SMTP.

    Every failure (missing config, missing score, SMTP error) is logged and
    reported as False; nothing is raised to the caller.
    """

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    async def send_results(self, session_id: str, recipient_email: str, user_name: Optional[str] = None) -> bool:
        if not self.configured:
            LOG.error("SMTP_HOST not configured; cannot send results for session=%s", session_id)
            return False
        if not session_id or not recipient_email:
            LOG.warning("Missing session id or recipient for results email")
            return False

        try:
            score = await latest_score(self.db, session_id)
            if score is None:
                LOG.warning("No score found for session=%s; results email not sent", session_id)
                return False

            report = build_report(score, self.settings.APP_URL)
            message = EmailMessage()
            message["From"] = self.settings.SENDER_EMAIL
            message["To"] = recipient_email
            message["Subject"] = SUBJECT
            message.set_content(f"{report['summary']}\n\nFull results: {report['session_link']}")
            message.add_alternative(render_results_html(user_name, report), subtype="html")

            await aiosmtplib.send(
                message,
                hostname=self.settings.SMTP_HOST,
                port=self.settings.SMTP_PORT,
                username=self.settings.SMTP_USER or None,
                password=self.settings.SMTP_PASSWORD or None,
                use_tls=self.settings.SMTP_USE_TLS,
                start_tls=self.settings.SMTP_START_TLS if not self.settings.SMTP_USE_TLS else False,
            )
        except Exception as e:
            LOG.error("Results email failed session=%s recipient=%s: %s", session_id, recipient_email, e)
            return False

        LOG.info("Results email sent session=%s recipient=%s", session_id, recipient_email)
        return True
