from pathlib import Path

import pytest

from sitedump.cli import build_config, main, parse_args
from sitedump.config import Config, ConfigError


def test_defaults():
    cfg = Config(url="https://www.example.com/start")
    assert (cfg.concurrency, cfg.timeout, cfg.max_depth, cfg.max_pages) == (10, 30.0, 3, 1000)
    assert cfg.site_slug == "example-com"
    assert cfg.output_path() == Path("results/example-com/scraped.json")
    assert cfg.images_dir() == Path("results/example-com/images")


def test_images_live_next_to_explicit_output():
    cfg = Config(url="https://example.com", output="/tmp/run/out.json")
    assert cfg.images_dir() == Path("/tmp/run/images")


@pytest.mark.parametrize(
    "overrides",
    [
        {"url": "not a url"},
        {"url": "ftp://example.com"},
        {"concurrency": 0},
        {"timeout": 0},
        {"max_depth": -1},
        {"max_pages": 0},
    ],
)
def test_validate_rejects_bad_values(overrides):
    cfg = Config(url="https://example.com").with_overrides(**overrides)
    with pytest.raises(ConfigError):
        cfg.validate()


def test_yaml_config_with_cli_overrides(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text("url: https://example.com\nconcurrency: 3\nmax_pages: 20\ninclude_subdomains: false\n")
    args = parse_args(["--config", str(path), "--max-pages", "5"])
    cfg = build_config(args)
    assert cfg.url == "https://example.com"
    assert cfg.concurrency == 3
    assert cfg.max_pages == 5
    assert cfg.include_subdomains is False


def test_yaml_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text("url: https://example.com\nthreads: 4\n")
    with pytest.raises(ConfigError, match="threads"):
        Config.from_yaml(path)


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text("- https://example.com\n")
    with pytest.raises(ConfigError):
        Config.from_yaml(path)


def test_cli_exits_with_error_for_invalid_url(tmp_path):
    assert main(["--url", "not-a-url", "--output", str(tmp_path / "out.json")]) == 2
    assert not (tmp_path / "out.json").exists()


def test_cli_exits_with_error_for_missing_config(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 2


def test_yaml_values_are_coerced(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text('url: https://example.com\nconcurrency: "5"\ntimeout: 12\ninclude_subdomains: "no"\n')
    cfg = Config.from_yaml(path)
    assert cfg.concurrency == 5
    assert cfg.timeout == 12.0
    assert isinstance(cfg.timeout, float)
    assert cfg.include_subdomains is False


def test_cli_exits_with_error_for_non_numeric_yaml_value(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text('url: https://example.com\nconcurrency: "five"\n')
    assert main(["--config", str(path)]) == 2


def test_cli_logs_to_file_named_in_yaml(tmp_path, monkeypatch):
    import logging

    from sitedump import cli as cli_module

    async def fake_run(cfg):
        return 0

    monkeypatch.setattr(cli_module, "main_async", fake_run)
    log_file = tmp_path / "logs" / "run.log"
    path = tmp_path / "site.yaml"
    path.write_text(f"url: https://example.com\noutput: {tmp_path / 'out.json'}\nlog_file: {log_file}\n")

    assert main(["--config", str(path)]) == 0
    logging.getLogger("sitedump").handlers.clear()
    assert "Target https://example.com" in log_file.read_text(encoding="utf-8")
