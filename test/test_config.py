import json

from devic_cli.client import DEFAULT_BASE_URL
from devic_cli.config import delete_config, get_config_file, load_config, save_config


def test_empty_config_uses_default_base_url(isolated_config):
    config = load_config()
    assert config.api_key is None
    assert config.base_url == DEFAULT_BASE_URL


def test_save_merges_and_writes_camel_case(isolated_config):
    save_config(api_key="devic-abc", base_url="https://staging.devic.ai")
    save_config(api_key="devic-xyz", base_url=None)

    path = get_config_file()
    assert json.loads(path.read_text()) == {
        "apiKey": "devic-xyz",
        "baseUrl": "https://staging.devic.ai",
    }
    assert path.read_text().endswith("}\n")


def test_env_overrides_file(isolated_config, monkeypatch):
    save_config(api_key="devic-file", base_url="https://file.example")
    monkeypatch.setenv("DEVIC_API_KEY", "devic-env")
    monkeypatch.setenv("DEVIC_BASE_URL", "https://env.example")

    config = load_config()
    assert config.api_key == "devic-env"
    assert config.base_url == "https://env.example"


def test_explicit_base_url_wins(isolated_config, monkeypatch):
    monkeypatch.setenv("DEVIC_BASE_URL", "https://env.example")
    assert load_config("https://flag.example").base_url == "https://flag.example"


def test_corrupt_file_is_treated_as_empty(isolated_config):
    isolated_config.mkdir(parents=True)
    (isolated_config / "config.json").write_text("{not json")

    assert load_config().api_key is None


def test_delete_config(isolated_config):
    assert delete_config() is False
    save_config(api_key="devic-abc")
    assert delete_config() is True
    assert not get_config_file().exists()
