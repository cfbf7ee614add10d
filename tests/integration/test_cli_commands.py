"""
Tests for CLI commands.

These tests verify the command-line interface functionality including:
- detect command text and structured output
- status command for asleep and awake users
- history export to JSON, CSV and binary files
- config show/set/reset commands
"""

import csv
import json

import pytest

from click.testing import CliRunner

from doze.cli import cli
from doze.config import load_preferences
from doze.export import import_binary
from tests.helpers.synthetic_data import (
    at,
    generate_night,
    generate_week,
    manual_confirmation,
    meaningful,
    write_events_csv,
)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def night_log(tmp_path):
    """One night: 22:00 Monday to 06:30 Tuesday."""
    return write_events_csv(
        tmp_path / "night.csv", generate_night(at(0, 22), at(1, 6, 30))
    )


@pytest.fixture
def week_log(tmp_path):
    """Three regular nights, 23:00 to 07:00."""
    return write_events_csv(tmp_path / "week.csv", generate_week(nights=3))


class TestDetectCommand:
    def test_text_output(self, cli_runner, night_log):
        result = cli_runner.invoke(
            cli, ["detect", str(night_log), "--now", "2025-03-04T06:35:00"]
        )

        assert result.exit_code == 0
        assert "Bedtime:      2025-03-03 22:00" in result.output
        assert "Wake time:    2025-03-04 06:30" in result.output
        assert "Duration:     8.50 h" in result.output
        assert "Confidence:   Low" in result.output

    def test_ongoing_sleep(self, cli_runner, tmp_path):
        log = write_events_csv(tmp_path / "events.csv", [meaningful(at(0, 22))])

        result = cli_runner.invoke(
            cli, ["detect", str(log), "--now", "2025-03-04T03:00:00"]
        )

        assert result.exit_code == 0
        assert "(still asleep)" in result.output

    def test_no_sleep(self, cli_runner, tmp_path):
        log = write_events_csv(tmp_path / "events.csv", [meaningful(at(0, 22))])

        result = cli_runner.invoke(
            cli, ["detect", str(log), "--now", "2025-03-03T23:00:00"]
        )

        assert result.exit_code == 0
        assert "No sleep detected." in result.output

    def test_manual_confirmation_in_log(self, cli_runner, tmp_path):
        events = generate_night(at(0, 22), at(1, 6, 30))
        events.insert(1, manual_confirmation(at(0, 22, 5)))
        log = write_events_csv(tmp_path / "events.csv", events)

        result = cli_runner.invoke(
            cli, ["detect", str(log), "--now", "2025-03-04T06:35:00"]
        )

        assert "Confidence:   Very High" in result.output
        assert "Manually confirmed: yes" in result.output

    def test_csv_output(self, cli_runner, night_log):
        result = cli_runner.invoke(
            cli,
            ["detect", str(night_log), "--now", "2025-03-04T06:35:00", "--format", "csv"],
        )

        assert result.exit_code == 0
        assert "2025-03-03,2025-03-03T22:00:00,2025-03-04T06:30:00,8.50" in result.output

    def test_missing_columns(self, cli_runner, tmp_path):
        log = tmp_path / "bad.csv"
        log.write_text("timestamp,category\n")

        result = cli_runner.invoke(cli, ["detect", str(log)])

        assert result.exit_code != 0
        assert "missing required columns" in result.output

    def test_missing_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(cli, ["detect", str(tmp_path / "absent.csv")])
        assert result.exit_code != 0


class TestStatusCommand:
    def test_asleep(self, cli_runner, night_log):
        result = cli_runner.invoke(
            cli, ["status", str(night_log), "--now", "2025-03-04T03:00:00"]
        )

        assert result.exit_code == 0
        assert "Asleep" in result.output
        assert "since 2025-03-03 22:00" in result.output

    def test_awake(self, cli_runner, night_log):
        result = cli_runner.invoke(
            cli, ["status", str(night_log), "--now", "2025-03-04T07:00:00"]
        )

        assert result.exit_code == 0
        assert "Awake" in result.output


class TestHistoryCommand:
    def test_json_to_file(self, cli_runner, week_log, tmp_path):
        output = tmp_path / "history.json"

        result = cli_runner.invoke(
            cli,
            ["history", str(week_log), "--now", "2025-03-06T08:00:00", "-o", str(output)],
        )

        assert result.exit_code == 0
        document = json.loads(output.read_text())
        assert document["total_sessions"] == 3
        bedtimes = [s["bedtime"] for s in document["sleep_sessions"]]
        assert bedtimes == [
            "2025-03-03T23:00:00",
            "2025-03-04T23:00:00",
            "2025-03-05T23:00:00",
        ]

    def test_csv_to_file(self, cli_runner, week_log, tmp_path):
        output = tmp_path / "history.csv"

        result = cli_runner.invoke(
            cli,
            [
                "history",
                str(week_log),
                "--now",
                "2025-03-06T08:00:00",
                "--format",
                "csv",
                "-o",
                str(output),
            ],
        )

        assert result.exit_code == 0
        with open(output, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [row["DurationHours"] for row in rows] == ["8.00"] * 3

    def test_binary_to_file(self, cli_runner, week_log, tmp_path):
        output = tmp_path / "history.bin"

        result = cli_runner.invoke(
            cli,
            [
                "history",
                str(week_log),
                "--now",
                "2025-03-06T08:00:00",
                "--format",
                "binary",
                "-o",
                str(output),
            ],
        )

        assert result.exit_code == 0
        assert "Wrote 3 sessions" in result.output
        sessions = import_binary(output.read_bytes())
        assert [s.bedtime for s in sessions] == [at(0, 23), at(1, 23), at(2, 23)]

    def test_binary_requires_output(self, cli_runner, week_log):
        result = cli_runner.invoke(cli, ["history", str(week_log), "--format", "binary"])

        assert result.exit_code != 0
        assert "requires --output" in result.output

    def test_learn_prints_weekly_pattern(self, cli_runner, week_log, tmp_path):
        output = tmp_path / "history.json"

        result = cli_runner.invoke(
            cli,
            [
                "history",
                str(week_log),
                "--now",
                "2025-03-06T08:00:00",
                "--learn",
                "-o",
                str(output),
            ],
        )

        assert result.exit_code == 0
        assert "Learned from 3 sessions" in result.output
        assert "Mon: bedtime 23:00, wake 07:00" in result.output
        assert "Sun: bedtime 23:30, wake 07:30" in result.output


class TestConfigCommands:
    def test_show_defaults(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "defaults, no config file" in result.output
        assert "target_bedtime = 1410 (23:30)" in result.output
        assert "minimum_interaction_gap = 14400" in result.output

    def test_set_then_show(self, cli_runner, isolated_config):
        result = cli_runner.invoke(cli, ["config", "set", "weekend_bedtime", "60"])

        assert result.exit_code == 0
        assert "✓ weekend_bedtime = 60" in result.output
        assert load_preferences().weekend_bedtime == 60

        shown = cli_runner.invoke(cli, ["config", "show"])
        assert str(isolated_config) in shown.output
        assert "weekend_bedtime = 60 (01:00)" in shown.output

    def test_set_boolean(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "set", "track_interruptions", "off"])

        assert result.exit_code == 0
        assert load_preferences().track_interruptions is False

    def test_set_unknown_key(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "set", "snooze_button", "3"])

        assert result.exit_code != 0
        assert "Unknown preference" in result.output

    def test_set_invalid_value(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "set", "target_sleep_hours", "30"])

        assert result.exit_code != 0
        assert load_preferences().target_sleep_hours == 8.0

    def test_reset(self, cli_runner, isolated_config):
        cli_runner.invoke(cli, ["config", "set", "target_sleep_hours", "7"])

        result = cli_runner.invoke(cli, ["config", "reset"])

        assert result.exit_code == 0
        assert not isolated_config.exists()
        assert load_preferences().target_sleep_hours == 8.0

    def test_stored_preferences_used_by_detect(self, cli_runner, night_log):
        cli_runner.invoke(cli, ["config", "set", "minimum_interaction_gap", "36000"])

        result = cli_runner.invoke(
            cli, ["detect", str(night_log), "--now", "2025-03-04T06:35:00"]
        )

        assert "No sleep detected." in result.output


def test_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "doze" in result.output
