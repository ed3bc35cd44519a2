"""
Tests for the assessment simulation runner script.

Tests cover:
- JSON summary on stdout
- Exit codes for success, poor recovery and simulation failure
"""
import json
import sys
from pathlib import Path
from unittest.mock import patch

scripts_dir = Path(__file__).parent.parent / "scripts"
if str(scripts_dir) not in sys.path:
    sys.path.insert(0, str(scripts_dir))

from run_assessment_simulation import main  # noqa: E402


class TestRunAssessmentSimulation:
    def test_prints_summary(self, capsys):
        exit_code = main(["--respondents", "5", "--seed", "3", "--items-per-dimension", "12"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["n_respondents"] == 5
        assert set(summary["dimension_agreement"]) == {"EI", "SN", "TF", "JP"}

    def test_default_bank(self, capsys):
        exit_code = main(["--respondents", "3", "--use-default-bank"])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["n_respondents"] == 3

    def test_recovery_below_minimum(self, capsys):
        exit_code = main(["--respondents", "3", "--min-recovery", "1.01"])
        assert exit_code == 1

    def test_invalid_study_size(self):
        assert main(["--respondents", "0"]) == 2

    def test_simulation_error(self):
        with patch(
            "portal.core.assessment.run_simulation",
            side_effect=RuntimeError("boom"),
        ):
            assert main(["--respondents", "2"]) == 2
