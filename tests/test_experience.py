"""
Tests for CV experience totals and job experience requirements.
"""

from datetime import date

from job_board.experience import (
    calculate_job_duration,
    calculate_total_experience,
    extract_required_experience,
)

TODAY = date(2026, 10, 19)


class TestJobDuration:

    def test_month_slash_year(self):
        assert calculate_job_duration("01/2019", "06/2021") == 2.4

    def test_year_only_defaults_to_full_years(self):
        # start defaults to January, end to December
        assert calculate_job_duration("2018", "2019") == 1.9

    def test_current_role_runs_to_today(self):
        assert calculate_job_duration("2020", None, current=True, today=date(2024, 1, 1)) == 4.0

    def test_missing_dates(self):
        assert calculate_job_duration(None, "2020") == 0
        assert calculate_job_duration("2020", None) == 0

    def test_negative_span_is_zero(self):
        assert calculate_job_duration("2022", "2020") == 0

    def test_quarter_years_round_half_up(self):
        assert calculate_job_duration("03/2020", "06/2020") == 0.3
        assert calculate_job_duration("01/2018", "10/2020") == 2.8


class TestTotalExperience:

    def test_sums_entries(self, sample_cv):
        result = calculate_total_experience(sample_cv, today=TODAY)
        years = [b["years"] for b in result["breakdown"]]
        assert len(years) == 2
        assert result["totalYears"] == round(sum(years), 1)
        assert result["breakdown"][0]["company"] == "Analytical Engines"

    def test_total_rounds_half_up(self):
        cv = {"experience": [
            {"startDate": "01/2020", "endDate": "04/2020"},
            {"startDate": "01/2021", "endDate": "01/2021"},
        ]}
        assert calculate_total_experience(cv)["totalYears"] == 0.3

    def test_empty_cv(self):
        assert calculate_total_experience(None) == {"totalYears": 0, "breakdown": []}


class TestRequiredExperience:

    def test_plus_years(self):
        result = extract_required_experience({
            "title": "Backend Engineer",
            "description": "Requires 5+ years of experience with Python.",
        })
        assert result["years"] == 5
        assert result["level"] == "Senior"
        assert result["details"] == "5+ years required"
        assert result["noExperienceRequired"] is False

    def test_minimum_years(self):
        result = extract_required_experience({
            "title": "Analyst", "description": "Minimum 2 years in a similar role.",
        })
        assert result["years"] == 2
        assert result["level"] == "Junior"

    def test_implausible_figures_are_ignored(self):
        result = extract_required_experience({
            "title": "Engineer", "description": "Join a company with 25+ years of history.",
        })
        assert result["years"] == 0
        assert result["level"] == "Not Specified"

    def test_no_experience_phrase(self):
        result = extract_required_experience({
            "title": "Warehouse Associate",
            "description": "No experience required, training provided.",
        })
        assert result["noExperienceRequired"] is True
        assert result["level"] == "Entry Level"

    def test_entry_level_title(self):
        result = extract_required_experience({"title": "Junior Developer"})
        assert result["years"] == 0
        assert result["details"] == "Entry level position"
        assert result["noExperienceRequired"] is True

    def test_level_metadata(self):
        result = extract_required_experience({"title": "Engineer", "experienceLevel": "lead"})
        assert result["years"] == 7
        assert result["level"] == "lead"

    def test_entry_level_metadata(self):
        result = extract_required_experience({"title": "Engineer", "experienceLevel": "entry"})
        assert result["years"] == 0
        assert result["noExperienceRequired"] is True

    def test_senior_title_fallback(self):
        result = extract_required_experience({"title": "Senior Engineer"})
        assert result["years"] == 5
        assert result["level"] == "Senior"

    def test_nothing_to_go_on(self):
        result = extract_required_experience({"title": "Engineer"})
        assert result["level"] == "Not Specified"
        assert result["details"] == "Experience requirements not specified"
