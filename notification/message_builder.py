import html
import urllib.parse
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class JobMatchContent(BaseModel):
    """Payload of the "new job matches you" email sent to a candidate."""
    candidate_id: str
    candidate_name: Optional[str] = None
    job_id: str
    job_title: str
    company_name: Optional[str] = None
    location: Optional[str] = None
    work_setting: Optional[str] = None
    score: int
    top_matched_skills: List[str] = Field(default_factory=list)
    growth_opportunities: List[str] = Field(default_factory=list)


class CandidateMatchEntry(BaseModel):
    candidate_id: str
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    job_id: str
    job_title: str
    overall: int
    skill: int = 0
    culture_fit: int = 0
    wellbeing: int = 0
    top_skills: List[str] = Field(default_factory=list)
    years_of_experience: Optional[float] = None
    location: Optional[str] = None


class EmployerSummaryContent(BaseModel):
    """One aggregated summary per employer when a new candidate matches their jobs."""
    employer_id: str
    employer_name: Optional[str] = None
    candidate_id: str
    candidate_name: Optional[str] = None
    matches: List[CandidateMatchEntry]


class DigestContent(BaseModel):
    employer_id: str
    employer_name: Optional[str] = None
    frequency: str
    period_start: datetime
    period_end: datetime
    high_priority_score: int = 80
    matches: List[CandidateMatchEntry] = Field(default_factory=list)

    @property
    def total_matches(self) -> int:
        return len(self.matches)

    @property
    def high_priority_matches(self) -> int:
        return sum(1 for m in self.matches if m.overall >= self.high_priority_score)


@dataclass
class RenderedMessage:
    subject: str
    html: str
    text: str


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _esc(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


class NotificationMessageBuilder:
    """Renders notification payloads to subject, HTML and plain text."""

    def __init__(self, base_url: str = "http://localhost:8080"):
        self.base_url = base_url.rstrip('/')

    def tracked_url(self, url: str, tracking_id: Optional[str]) -> str:
        if not tracking_id:
            return url
        quoted = urllib.parse.quote(url, safe='')
        return f"{self.base_url}/api/email/track/click/{tracking_id}?url={quoted}"

    def _pixel(self, tracking_id: Optional[str]) -> str:
        if not tracking_id:
            return ""
        src = _esc(f"{self.base_url}/api/email/track/open/{tracking_id}")
        return f'<img src="{src}" width="1" height="1" alt="" style="display:none" />'

    @staticmethod
    def _page(title: str, body: str, footer: str = "") -> str:
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .header {{ background: #4f46e5; color: white; padding: 20px; border-radius: 8px 8px 0 0; }}
        .content {{ padding: 20px; background: #f9f9f9; }}
        .card {{ background: white; padding: 15px; margin: 10px 0; border-radius: 8px; border-left: 4px solid #4f46e5; }}
        .title {{ font-size: 18px; font-weight: bold; color: #4f46e5; }}
        .detail {{ margin: 5px 0; font-size: 14px; }}
        .priority {{ color: #b45309; font-weight: bold; }}
        .footer {{ text-align: center; padding: 15px; color: #666; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="header"><h1>{_esc(title)}</h1></div>
    <div class="content">
{body}
    </div>
    <div class="footer">{footer}</div>
</body>
</html>"""

    def job_match(self, content: JobMatchContent, tracking_id: Optional[str] = None) -> RenderedMessage:
        company = content.company_name or "a company"
        subject = f"New job match: {content.job_title} at {company} ({content.score}% match)"
        job_url = self.tracked_url(f"{self.base_url}/jobs/{content.job_id}", tracking_id)
        greeting = f"Hi {content.candidate_name}," if content.candidate_name else "Hi,"

        lines = [
            f'        <p>{_esc(greeting)}</p>',
            f'        <p>A new role matches your profile with a score of <strong>{content.score}%</strong>.</p>',
            '        <div class="card">',
            f'            <div class="title">{_esc(content.job_title)}</div>',
            f'            <div class="detail"><strong>Company:</strong> {_esc(company)}</div>',
        ]
        if content.location:
            lines.append(f'            <div class="detail"><strong>Location:</strong> {_esc(content.location)}</div>')
        if content.work_setting:
            lines.append(f'            <div class="detail"><strong>Work setting:</strong> {_esc(content.work_setting)}</div>')
        if content.top_matched_skills:
            lines.append(f'            <div class="detail"><strong>Matched skills:</strong> {_esc(", ".join(content.top_matched_skills))}</div>')
        if content.growth_opportunities:
            items = "".join(f"<li>{_esc(g)}</li>" for g in content.growth_opportunities)
            lines.append(f'            <div class="detail"><strong>Growth opportunities:</strong><ul>{items}</ul></div>')
        lines.append(f'            <div class="detail"><a href="{_esc(job_url)}">View the job</a></div>')
        lines.append('        </div>')
        lines.append(f'        {self._pixel(tracking_id)}')

        text = [
            greeting,
            "",
            f"A new role matches your profile with a score of {content.score}%.",
            "",
            f"{content.job_title} at {company}",
        ]
        if content.location:
            text.append(f"Location: {content.location}")
        if content.top_matched_skills:
            text.append(f"Matched skills: {', '.join(content.top_matched_skills)}")
        if content.growth_opportunities:
            text.append("Growth opportunities:")
            text.extend(f"- {g}" for g in content.growth_opportunities)
        text.extend(["", f"View the job: {job_url}"])

        return RenderedMessage(subject=subject, html=self._page(subject, "\n".join(lines)), text="\n".join(text))

    def _entry_html(self, entry: CandidateMatchEntry, tracking_id: Optional[str], high_priority_score: Optional[int] = None) -> str:
        profile_url = self.tracked_url(f"{self.base_url}/candidates/{entry.candidate_id}", tracking_id)
        badge = ""
        if high_priority_score is not None and entry.overall >= high_priority_score:
            badge = ' <span class="priority">HIGH PRIORITY</span>'
        rows = [
            '        <div class="card">',
            f'            <div class="title">{_esc(entry.candidate_name or "Unknown")}{badge}</div>',
            f'            <div class="detail"><strong>Job:</strong> {_esc(entry.job_title)}</div>',
            f'            <div class="detail"><strong>Overall match:</strong> {entry.overall}%</div>',
            f'            <div class="detail">Skills {entry.skill}% | Culture fit {entry.culture_fit}% | Wellbeing {entry.wellbeing}%</div>',
        ]
        if entry.top_skills:
            rows.append(f'            <div class="detail"><strong>Top skills:</strong> {_esc(", ".join(entry.top_skills))}</div>')
        rows.append(f'            <div class="detail"><a href="{_esc(profile_url)}">View profile</a></div>')
        rows.append('        </div>')
        return "\n".join(rows)

    def _entry_text(self, index: int, entry: CandidateMatchEntry, high_priority_score: Optional[int] = None) -> List[str]:
        flag = ""
        if high_priority_score is not None and entry.overall >= high_priority_score:
            flag = " [HIGH PRIORITY]"
        lines = [
            f"{index}. {entry.candidate_name or 'Unknown'}{flag}",
            f"   Job: {entry.job_title}",
            f"   Overall Match: {entry.overall}%",
            f"   Skills: {entry.skill}% | Culture Fit: {entry.culture_fit}% | Wellbeing: {entry.wellbeing}%",
        ]
        if entry.years_of_experience is not None:
            lines.append(f"   Experience: {entry.years_of_experience:g} years")
        if entry.location:
            lines.append(f"   Location: {entry.location}")
        if entry.top_skills:
            lines.append(f"   Top Skills: {', '.join(entry.top_skills)}")
        lines.append(f"   View Profile: {self.base_url}/candidates/{entry.candidate_id}")
        return lines

    def employer_summary(self, content: EmployerSummaryContent, tracking_id: Optional[str] = None) -> RenderedMessage:
        name = content.candidate_name or "A new candidate"
        subject = f"{name} matches {_plural(len(content.matches), 'open job')}"
        intro = f"{name} just joined and matches the following open positions."

        body = [f"        <p>{_esc(intro)}</p>"]
        body.extend(self._entry_html(entry, tracking_id) for entry in content.matches)
        body.append(f"        {self._pixel(tracking_id)}")

        text = [intro, ""]
        for i, entry in enumerate(content.matches, start=1):
            text.extend(self._entry_text(i, entry))
            text.append("")

        return RenderedMessage(subject=subject, html=self._page(subject, "\n".join(body)), text="\n".join(text).strip())

    def digest(self, content: DigestContent, tracking_id: Optional[str] = None) -> RenderedMessage:
        label = content.frequency.capitalize()
        subject = f"{label} Matching Digest: {content.total_matches} New Candidate{'' if content.total_matches == 1 else 's'}"
        period = f"{content.period_start:%Y-%m-%d} - {content.period_end:%Y-%m-%d}"
        settings_url = f"{self.base_url}/settings/matching-preferences"

        body = [
            f'        <p><strong>{_esc(content.employer_name or "")}</strong> - {_esc(period)}</p>',
            f'        <p>Total matches: {content.total_matches} | High priority: {content.high_priority_matches}</p>',
        ]
        body.extend(self._entry_html(entry, tracking_id, content.high_priority_score) for entry in content.matches)
        if not content.matches:
            body.append("        <p>No new matches found in this period.</p>")
        body.append(f"        {self._pixel(tracking_id)}")
        footer = f'<a href="{_esc(self.tracked_url(settings_url, tracking_id))}">Update matching preferences</a>'

        text = [
            "CANDIDATE MATCHING DIGEST",
            content.employer_name or "",
            period,
            "",
            "SUMMARY",
            "-------",
            f"Total Matches: {content.total_matches}",
            f"High Priority: {content.high_priority_matches}",
            "",
        ]
        for i, entry in enumerate(content.matches, start=1):
            text.extend(self._entry_text(i, entry, content.high_priority_score))
            text.append("")
        if not content.matches:
            text.append("No new matches found in this period.")
        text.extend(["---", f"Update Matching Preferences: {settings_url}"])

        return RenderedMessage(subject=subject, html=self._page(subject, "\n".join(body), footer), text="\n".join(text).strip())
