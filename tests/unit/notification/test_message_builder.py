"""
Unit tests for notification message rendering.
"""
import unittest
from datetime import datetime, timezone

from notification.message_builder import (
    CandidateMatchEntry,
    DigestContent,
    EmployerSummaryContent,
    JobMatchContent,
    NotificationMessageBuilder,
)


def entry(candidate_id="c1", name="Ada", overall=85, **overrides):
    fields = dict(
        candidate_id=candidate_id, candidate_name=name, job_id="j1", job_title="Backend Engineer",
        overall=overall, skill=90, culture_fit=70, wellbeing=60, top_skills=["Python", "SQL"],
        years_of_experience=6.0, location="London",
    )
    fields.update(overrides)
    return CandidateMatchEntry(**fields)


class TestJobMatch(unittest.TestCase):

    def setUp(self):
        self.builder = NotificationMessageBuilder("https://talentmatch.app/")

    def test_subject_and_tracking(self):
        content = JobMatchContent(
            candidate_id="c1", candidate_name="Ada", job_id="j1", job_title="Backend Engineer",
            company_name="Acme", score=85, top_matched_skills=["python"], growth_opportunities=["Tech lead track"],
        )

        message = self.builder.job_match(content, tracking_id="track-1")

        self.assertEqual(message.subject, "New job match: Backend Engineer at Acme (85% match)")
        self.assertIn("/api/email/track/open/track-1", message.html)
        self.assertIn("/api/email/track/click/track-1?url=https%3A%2F%2Ftalentmatch.app%2Fjobs%2Fj1", message.html)
        self.assertIn("- Tech lead track", message.text)
        self.assertTrue(message.text.startswith("Hi Ada,"))

    def test_untracked_links(self):
        content = JobMatchContent(candidate_id="c1", job_id="j1", job_title="Role", score=70)

        message = self.builder.job_match(content)

        self.assertIn("View the job: https://talentmatch.app/jobs/j1", message.text)
        self.assertNotIn("track/open", message.html)
        self.assertIn("a company", message.subject)

    def test_html_is_escaped(self):
        content = JobMatchContent(candidate_id="c1", job_id="j1", job_title="<script>x</script>", score=70)

        message = self.builder.job_match(content)

        self.assertNotIn("<script>x</script>", message.html)
        self.assertIn("&lt;script&gt;", message.html)


class TestEmployerSummary(unittest.TestCase):

    def test_one_message_lists_all_matches(self):
        content = EmployerSummaryContent(
            employer_id="emp-1", candidate_id="c1", candidate_name="Ada",
            matches=[entry(job_title="Backend Engineer"), entry(job_title="Data Engineer", overall=70)],
        )

        message = NotificationMessageBuilder().employer_summary(content)

        self.assertEqual(message.subject, "Ada matches 2 open jobs")
        self.assertIn("1. Ada", message.text)
        self.assertIn("2. Ada", message.text)
        self.assertIn("Job: Data Engineer", message.text)
        self.assertIn("Experience: 6 years", message.text)


class TestDigest(unittest.TestCase):

    def _content(self, matches):
        return DigestContent(
            employer_id="emp-1", employer_name="Acme", frequency="weekly",
            period_start=datetime(2026, 9, 24, tzinfo=timezone.utc),
            period_end=datetime(2026, 10, 1, tzinfo=timezone.utc),
            matches=matches,
        )

    def test_high_priority_flagged(self):
        content = self._content([entry(overall=92), entry("c2", "Linus", overall=65)])

        message = NotificationMessageBuilder().digest(content)

        self.assertEqual(content.high_priority_matches, 1)
        self.assertEqual(message.subject, "Weekly Matching Digest: 2 New Candidates")
        self.assertIn("1. Ada [HIGH PRIORITY]", message.text)
        self.assertIn("2. Linus\n", message.text)
        self.assertIn("2026-09-24 - 2026-10-01", message.text)
        self.assertIn("HIGH PRIORITY", message.html)

    def test_single_match_subject(self):
        message = NotificationMessageBuilder().digest(self._content([entry()]))
        self.assertEqual(message.subject, "Weekly Matching Digest: 1 New Candidate")

    def test_empty_digest_text(self):
        message = NotificationMessageBuilder().digest(self._content([]))
        self.assertIn("No new matches found in this period.", message.text)


if __name__ == '__main__':
    unittest.main()
