"""
CSV export of batch match results.
"""
import csv
import io
from datetime import datetime, timezone
from typing import Optional, Sequence, TextIO

from core.batch.models import BatchMatchResult

CSV_COLUMNS = [
    'Rank',
    'Candidate ID',
    'Candidate Name',
    'Candidate Email',
    'Job ID',
    'Job Title',
    'Overall Score',
    'Skill Score',
    'Experience Score',
    'Culture Fit Score',
    'Wellbeing Score',
    'Score Source',
    'Exported At',
]


def write_results_csv(
    results: Sequence[BatchMatchResult],
    stream: TextIO,
    exported_at: Optional[datetime] = None,
) -> int:
    """Write one row per result entry. Returns the number of data rows written."""
    exported_at = exported_at or datetime.now(timezone.utc)
    writer = csv.writer(stream)
    writer.writerow(CSV_COLUMNS)

    rows = 0
    for result in results:
        for entry in result.entries:
            score = entry.score
            writer.writerow([
                entry.rank,
                entry.candidate.id,
                entry.candidate.name or '',
                entry.candidate.email or '',
                entry.job.id,
                entry.job.title,
                score.overall,
                score.skill,
                score.experience,
                score.culture_fit,
                score.wellbeing,
                score.source.value,
                exported_at.isoformat(),
            ])
            rows += 1
    return rows


def results_to_csv(results: Sequence[BatchMatchResult], exported_at: Optional[datetime] = None) -> str:
    buffer = io.StringIO()
    write_results_csv(results, buffer, exported_at=exported_at)
    return buffer.getvalue()
