"""
Tests for the lshmatch command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from lshmatch import __version__
from lshmatch.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def corpus_file(tmp_path):
    path = tmp_path / "corpus.csv"
    path.write_text("id,text\n1001,CAMPER\n1002,AAAAAABAAAAAAA\n1003,FUBAR\n1004,Z\n", encoding="utf-8")
    return path


@pytest.fixture
def cli(runner, index_root):
    """Invoke the CLI against a private index root."""
    def invoke(*args, **kwargs):
        return runner.invoke(main, ["--index-root", str(index_root), *args], **kwargs)
    return invoke


def _json_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestBuildAndSearch:
    """Test the build and search commands."""

    def test_version(self, runner):
        """Test --version prints the package version."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_build(self, cli, corpus_file, index_root):
        """Test building from a CSV corpus."""
        result = cli("build", "demo", str(corpus_file), "--seed", "3")

        assert result.exit_code == 0, result.output
        assert "Built" in result.output
        assert (index_root / "demo" / "config.json").exists()

    def test_search_json(self, cli, corpus_file):
        """Test JSON-lines search output."""
        cli("build", "demo", str(corpus_file), "--seed", "3")
        result = cli("search", "demo", "CAMPER", "--json")

        assert result.exit_code == 0, result.output
        assert _json_lines(result.output) == [
            {"query_id": 0, "corpus_id": 1001, "matched_bands": 6, "similarity": 1.0}
        ]

    def test_search_table(self, cli, corpus_file):
        """Test the rich table output."""
        cli("build", "demo", str(corpus_file))
        result = cli("search", "demo", "CAMPER")

        assert result.exit_code == 0, result.output
        assert "1001" in result.output

    def test_search_no_matches(self, cli, corpus_file):
        """Test a query with no candidates."""
        cli("build", "demo", str(corpus_file))
        result = cli("search", "demo", "QQQQ")

        assert result.exit_code == 0
        assert "No matches" in result.output

    def test_search_file(self, cli, corpus_file, tmp_path):
        """Test batch searching from a JSON-lines file."""
        queries = tmp_path / "queries.jsonl"
        queries.write_text('{"id": 7, "text": "CAMPER"}\n{"id": 8, "text": "FUBAR"}\n')
        cli("build", "demo", str(corpus_file))

        result = cli("search-file", "demo", str(queries), "--json")

        assert result.exit_code == 0, result.output
        pairs = {(m["query_id"], m["corpus_id"]) for m in _json_lines(result.output)}
        assert {(7, 1001), (8, 1003)} <= pairs

    def test_invalid_band_size(self, cli, corpus_file, index_root):
        """Test configuration errors exit non-zero without writing."""
        result = cli("build", "demo", str(corpus_file), "-b", "5")

        assert result.exit_code == 1
        assert "hash_band_size" in result.output
        assert not (index_root / "demo").exists()

    def test_min_band_matches_out_of_range(self, cli, corpus_file):
        """Test out-of-range band thresholds are reported."""
        cli("build", "demo", str(corpus_file))
        result = cli("search", "demo", "CAMPER", "-m", "7")

        assert result.exit_code == 1
        assert "min_band_matches" in result.output

    def test_missing_index(self, cli):
        """Test searching an index that was never built."""
        result = cli("search", "ghost", "CAMPER")

        assert result.exit_code == 1
        assert "ghost" in result.output


class TestHousekeeping:
    """Test info, list, drop and config commands."""

    def test_info_json(self, cli, corpus_file):
        """Test machine-readable index info."""
        cli("build", "demo", str(corpus_file), "-k", "20", "-b", "4")
        result = cli("info", "demo", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["config"]["signature_size"] == 20
        assert data["config"]["hash_band_size"] == 4
        assert data["entity_count"] == 4

    def test_info_table(self, cli, corpus_file):
        """Test the human-readable index summary."""
        cli("build", "demo", str(corpus_file))
        result = cli("info", "demo")

        assert result.exit_code == 0, result.output
        assert "Threshold" in result.output

    def test_list_and_drop(self, cli, corpus_file):
        """Test listing and dropping indexes."""
        assert "No indexes" in cli("list").output

        cli("build", "demo", str(corpus_file))
        assert "demo" in cli("list").output.splitlines()

        result = cli("drop", "demo", "--yes")
        assert result.exit_code == 0
        assert "demo" not in cli("list").output.splitlines()

    def test_drop_aborted(self, cli, corpus_file, index_root):
        """Test declining the confirmation keeps the index."""
        cli("build", "demo", str(corpus_file))
        result = cli("drop", "demo", input="n\n")

        assert "Aborted" in result.output
        assert (index_root / "demo").exists()

    def test_invalid_env_settings_reported(self, cli, corpus_file, monkeypatch):
        """Test invalid environment overrides exit cleanly with status 1."""
        monkeypatch.setenv("LSHMATCH_PARTITIONS", "0")
        result = cli("build", "demo", str(corpus_file))

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "partitions" in result.output

    def test_malformed_settings_file_reported(self, runner, tmp_path, corpus_file):
        """Test an unparseable settings file exits cleanly with status 1."""
        path = tmp_path / "bad.yml"
        path.write_text("partitions: [1, 2\n")
        result = runner.invoke(main, ["--config", str(path), "build", "demo", str(corpus_file)])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Cannot read settings file" in result.output

    def test_config_init_and_show(self, runner, tmp_path):
        """Test writing and displaying a settings file."""
        path = tmp_path / "settings.yml"
        result = runner.invoke(main, ["config", "init", "--path", str(path)])
        assert result.exit_code == 0, result.output
        assert path.exists()

        result = runner.invoke(main, ["--config", str(path), "config", "show"])
        assert result.exit_code == 0, result.output
        assert "partitions" in result.output
