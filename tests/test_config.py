"""
Tests for job file validation and loading.
"""

import json

import pytest

from ghfetch.config import deep_merge, load_job_file, parse_job_file
from ghfetch.errors import ConfigError
from ghfetch.schema import validate_job_file


@pytest.fixture
def job_data():
    return {
        "options": {
            "connection": {"host": "api.github.com", "timeout": 5},
            "output": "out",
            "rate_limit": {"warning": 25},
            "task": {"type": "data", "cache": True},
        },
        "jobs": {
            "users": {"src": ["users/a", "users/b"]},
            "readme": {
                "src": "repos/o/r/readme",
                "dest": "README.md",
                "options": {"task": {"type": "file"}, "connection": {"headers": {"X-Test": "1"}}},
            },
        },
    }


class TestValidation:
    def test_valid_file(self, job_data):
        assert validate_job_file(job_data) == []

    def test_missing_jobs(self):
        errors = validate_job_file({"options": {}})
        assert any("jobs" in e for e in errors)

    def test_bad_task_type(self, job_data):
        job_data["jobs"]["users"]["options"] = {"task": {"type": "blob"}}
        errors = validate_job_file(job_data)
        assert errors == ["'jobs.users.options.task.type' must be one of: data, file"]

    def test_bad_src(self, job_data):
        job_data["jobs"]["users"]["src"] = ["users/a", ""]
        assert validate_job_file(job_data) == ["'jobs.users.src' entries must be non-empty strings"]

    def test_bad_warning(self, job_data):
        job_data["options"]["rate_limit"]["warning"] = "ten"
        assert validate_job_file(job_data) == ["'options.rate_limit.warning' must be an integer"]

    def test_bad_protocol(self, job_data):
        job_data["options"]["connection"]["protocol"] = "ftp"
        assert validate_job_file(job_data) == ["'options.connection.protocol' must be http or https"]

    def test_not_an_object(self):
        assert validate_job_file([]) == ["Job file must contain a JSON object"]


class TestJobFile:
    def test_deep_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = deep_merge(base, {"a": {"y": 3}, "c": 4})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_job_options_override_defaults(self, job_data, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        job_file = parse_job_file(job_data)

        options = job_file.options_for("readme")

        assert options.task.kind == "file"
        assert options.task.name == "readme"
        assert options.connection.timeout == 5.0
        assert options.connection.headers == {"X-Test": "1"}
        assert options.rate_limit_warning == 25
        assert options.output == "out"
        assert options.authenticated is False

    def test_token_from_environment(self, job_data, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        options = parse_job_file(job_data).options_for("users")
        assert options.token == "env-token"
        assert options.authenticated is True

    def test_partition_flag(self, job_data):
        job_data["jobs"]["users"]["options"] = {"task": {"partition": False}}
        job_file = parse_job_file(job_data)
        assert job_file.options_for("users").task.cache_name == "default"
        assert job_file.options_for("readme").task.cache_name == "readme"

    def test_context_for(self, job_data, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        context = parse_job_file(job_data).context_for("users")

        assert context.name == "users"
        assert context.sources == ["users/a", "users/b"]
        assert context.dest is None
        assert len(context.requests) == 0
        assert len(context.writes) == 0
        assert len(context.cache) == 0

    def test_unknown_job(self, job_data):
        with pytest.raises(ConfigError, match="Unknown job"):
            parse_job_file(job_data).options_for("nope")

    def test_invalid_file_lists_errors(self):
        with pytest.raises(ConfigError) as exc_info:
            parse_job_file({"jobs": {"x": {"src": 5}}})
        assert exc_info.value.errors == ["'jobs.x.src' must be a string or a list of strings"]

    def test_load_from_disk(self, job_data, tmp_path):
        path = tmp_path / "ghfetch.json"
        path.write_text(json.dumps(job_data), encoding="utf-8")

        job_file = load_job_file(path)

        assert job_file.names == ["users", "readme"]
        assert job_file.path == path

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_job_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "ghfetch.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_job_file(path)
