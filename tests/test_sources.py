"""Tests for the readings source."""

import json
from pathlib import Path

import pytest

from rackwatch.exceptions import StoreUnavailableError
from rackwatch.sources import load_readings, parse_readings


class TestParseReadings:
    """Tests for parse_readings()."""

    def test_bare_list(self) -> None:
        readings = parse_readings([{"pduId": "P-1", "voltage": 230}, {"pduId": "P-2"}])

        assert [r.pdu_id for r in readings] == ["P-1", "P-2"]

    def test_data_envelope(self) -> None:
        readings = parse_readings({"data": [{"pdu_id": "P-1", "rackId": "R-1"}]})

        assert readings[0].rack_id == "R-1"

    def test_invalid_entries_skipped(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Malformed samples are dropped; the rest of the payload is kept."""
        readings = parse_readings([{"rack_id": "R-1"}, "junk", {"pdu_id": "P-3"}])

        assert [r.pdu_id for r in readings] == ["P-3"]
        assert capsys.readouterr().out.count("reading_invalid") == 2

    def test_unexpected_payload(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert parse_readings("not a list") == []
        assert "readings_payload_invalid" in capsys.readouterr().out


class TestLoadReadings:
    """Tests for load_readings()."""

    def test_reads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.json"
        path.write_text(json.dumps([{"pduId": "P-1", "current": "N/A", "voltage": "231.5"}]))

        [reading] = load_readings(str(path))

        assert reading.current is None
        assert reading.voltage == 231.5

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(StoreUnavailableError, match="not found"):
            load_readings(str(tmp_path / "readings.json"))

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.json"
        path.write_text("[{")

        with pytest.raises(StoreUnavailableError, match="not valid JSON"):
            load_readings(str(path))

    def test_undecodable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.json"
        path.write_bytes(b"[\xff]")

        with pytest.raises(StoreUnavailableError, match="not valid JSON"):
            load_readings(str(path))

    def test_directory_instead_of_file(self, tmp_path: Path) -> None:
        with pytest.raises(StoreUnavailableError, match="Cannot read"):
            load_readings(str(tmp_path))
