"""Tests for the claims-suite typer CLI."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from app.coder.cli import app

runner = CliRunner()


class TestValidateCommand:
    def test_valid_claim_exits_zero(self, tmp_path, claim_factory):
        path = tmp_path / "claim.json"
        path.write_text(claim_factory().model_dump_json(), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["valid"] is True

    def test_invalid_claim_exits_one(self, tmp_path, claim_factory):
        path = tmp_path / "claim.json"
        claim = claim_factory(procedures=[{"code": "17000", "charge": 150.0}, {"code": "99213", "charge": 160.0}])
        path.write_text(claim.model_dump_json(), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "valid: False" in result.stdout

    def test_malformed_file_exits_two(self, tmp_path):
        path = tmp_path / "claim.json"
        path.write_text('{"patient": 3}', encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 2


class TestMapCommand:
    def test_offline_json_mapping(self, tmp_path, sample_note):
        path = tmp_path / "note.txt"
        path.write_text(sample_note, encoding="utf-8")

        result = runner.invoke(app, ["map", str(path), "--offline", "--json"])

        assert result.exit_code == 0
        mapping = json.loads(result.stdout)
        assert [code["code"] for code in mapping["cpt_codes"]] == ["17000", "17003", "99213"]
        assert [code["code"] for code in mapping["icd_codes"]] == ["L57.0"]


def test_knowledge_info():
    result = runner.invoke(app, ["--knowledge-info"])
    assert result.exit_code == 0
    assert "Knowledge Tables" in result.stdout
