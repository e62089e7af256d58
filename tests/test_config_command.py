from types import SimpleNamespace

import pytest

from manifestcheck.config_command import (
    CONFIG_AVAILABLE_KEYS,
    ConfigCommandContext,
    get_value,
    run_get,
    run_set,
    set_value,
    validate_key,
)
from manifestcheck.messager import VersionMessage

TOKEN_VALUE = "tokenValue"


class FakeMessager:
    def __init__(self):
        self.versions = []

    def load_version_messages(self, cli_version):
        self.versions.append(cli_version)
        return iter([VersionMessage("1.2.3", "version message mock", "green")])


class FakePrinter:
    def __init__(self):
        self.messages = []

    def print_message(self, message_text, message_color):
        self.messages.append((message_text, message_color))


class FakeLocalConfig:
    def __init__(self, fail_set=False):
        self.get_calls = []
        self.set_calls = []
        self.fail_set = fail_set

    def get_local_configuration(self):
        return SimpleNamespace(token="token")

    def get(self, key):
        self.get_calls.append(key)
        return TOKEN_VALUE

    def set(self, key, value):
        self.set_calls.append((key, value))
        if self.fail_set:
            raise OSError("read-only")


@pytest.fixture
def parts():
    messager = FakeMessager()
    printer = FakePrinter()
    local_config = FakeLocalConfig()
    ctx = ConfigCommandContext(messager, "1.2.3", printer, local_config)
    return ctx, messager, printer, local_config


def test_get_token(parts, capsys):
    ctx, _, _, local_config = parts
    assert get_value(ctx, "token") == TOKEN_VALUE
    assert local_config.get_calls == ["token"]
    assert capsys.readouterr().out == TOKEN_VALUE + "\n"


def test_execute_get_command(parts, capsys):
    ctx, messager, printer, _ = parts
    run_get(ctx, ["token"])
    assert capsys.readouterr().out == TOKEN_VALUE + "\n"
    assert messager.versions == ["1.2.3"]
    assert printer.messages == [("version message mock\n", "green")]


def test_get_requires_one_argument(parts):
    ctx, _, _, _ = parts
    with pytest.raises(ValueError, match="requires exactly 1 argument"):
        run_get(ctx, [])


def test_set_calls_local_config(parts):
    ctx, _, _, local_config = parts
    set_value(ctx, "testkey", "testvalue")
    assert local_config.set_calls == [("testkey", "testvalue")]


def test_run_set_reports_failure(capsys):
    printer = FakePrinter()
    local_config = FakeLocalConfig(fail_set=True)
    ctx = ConfigCommandContext(FakeMessager(), "1.2.3", printer, local_config)
    run_set(ctx, ["token", "token"])
    out = capsys.readouterr().out
    assert out.startswith("Failed setting token with value token. Error: ")
    assert printer.messages == [("version message mock\n", "green")]


def test_run_set_rejects_unknown_key(parts):
    ctx, _, _, local_config = parts
    with pytest.raises(ValueError, match="key must be one of"):
        run_set(ctx, ["Not_a_valid_key", "x"])
    assert local_config.set_calls == []


def test_run_set_requires_two_arguments(parts):
    ctx, _, _, _ = parts
    with pytest.raises(ValueError, match="requires exactly 2 arguments"):
        run_set(ctx, ["token"])


@pytest.mark.parametrize("key", CONFIG_AVAILABLE_KEYS)
def test_validate_key_accepts_available_keys(key):
    assert validate_key(key) is None


def test_validate_key_rejects_unknown_key():
    with pytest.raises(ValueError, match="key must be one of"):
        validate_key("Not_a_valid_key")