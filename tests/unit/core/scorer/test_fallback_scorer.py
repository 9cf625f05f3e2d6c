"""
Unit tests for the heuristic scorer used when the oracle is unavailable.
"""
import unittest

from core.scorer.fallback import (
    FALLBACK_NOTICE,
    fallback_score,
    matched_required_skills,
    salary_fit_score,
    skill_match_score,
    work_setting_score,
)
from core.scorer.models import CandidateProfile, JobPosting, ScoreSource, weighted_overall
from tests import make_candidate, make_job


class TestSkillMatch(unittest.TestCase):

    def test_two_of_three_required_skills_rounds_to_67(self):
        score, matched = skill_match_score(["Python", "React"], ["python", "react", "go"])
        self.assertEqual(score, 67)
        self.assertEqual(matched, ["python", "react"])

    def test_substring_match_either_direction(self):
        matched = matched_required_skills(["PostgreSQL", "Java"], ["SQL", "JavaScript"])
        self.assertEqual(matched, ["SQL", "JavaScript"])

    def test_no_requirements_scores_50(self):
        score, matched = skill_match_score(["Python"], [])
        self.assertEqual(score, 50)
        self.assertEqual(matched, [])

    def test_blank_requirements_are_ignored(self):
        score, _ = skill_match_score(["Python"], ["", "  "])
        self.assertEqual(score, 50)


class TestWorkSettingAndSalary(unittest.TestCase):

    def test_work_setting(self):
        self.assertEqual(work_setting_score("Remote", "remote"), 100)
        self.assertEqual(work_setting_score("onsite", "remote"), 50)
        self.assertEqual(work_setting_score(None, "remote"), 70)

    def test_salary_within_band(self):
        self.assertEqual(salary_fit_score(100000, 80000, 120000), 100)

    def test_salary_below_band(self):
        self.assertEqual(salary_fit_score(70000, 80000, 120000), 90)

    def test_salary_above_band_penalised_by_relative_gap(self):
        # gap 30k on an expectation of 150k -> 20% off
        self.assertEqual(salary_fit_score(150000, 80000, 120000), 80)

    def test_salary_gap_never_negative(self):
        self.assertEqual(salary_fit_score(100000, 1000, 2000), 2)
        self.assertGreaterEqual(salary_fit_score(10 ** 9, 1, 2), 0)

    def test_missing_salary_data_is_neutral(self):
        self.assertEqual(salary_fit_score(None, 80000, 120000), 70)
        self.assertEqual(salary_fit_score(100000, None, 120000), 70)
        self.assertEqual(salary_fit_score(0, 80000, 120000), 70)


class TestFallbackScore(unittest.TestCase):

    def test_empty_profiles_score_64(self):
        """No skills, no requirements, no preferences: 50*0.30 + 70*0.70."""
        score = fallback_score(CandidateProfile(id="c"), JobPosting(id="j", title="Anything"))

        self.assertEqual(score.skill, 50)
        self.assertEqual(score.overall, 64)
        self.assertTrue(score.is_fallback)

    def test_overall_uses_weighted_formula(self):
        score = fallback_score(make_candidate(), make_job())

        self.assertEqual(score.overall, weighted_overall(score.dimensions()))
        self.assertEqual(score.skill, 100)
        self.assertEqual(score.work_setting, 100)
        self.assertEqual(score.salary_fit, 100)
        self.assertEqual(score.overall, 85)

    def test_breakdown_marks_basic_scoring(self):
        score = fallback_score(make_candidate(), make_job())

        self.assertEqual(score.source, ScoreSource.FALLBACK)
        self.assertIn(FALLBACK_NOTICE, score.breakdown.recommendations)
        self.assertIn("Matched 2 of 2 required skills", score.breakdown.key_insights)

    def test_deterministic(self):
        candidate, job = make_candidate(), make_job()
        self.assertEqual(fallback_score(candidate, job), fallback_score(candidate, job))


if __name__ == '__main__':
    unittest.main()
