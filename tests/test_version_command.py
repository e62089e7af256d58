from manifestcheck.messager import VersionMessage
from manifestcheck.version_command import VersionCommandContext, run_version


class FakeMessager:
    def __init__(self, messages):
        self.messages = messages
        self.versions = []

    def load_version_messages(self, cli_version):
        self.versions.append(cli_version)
        return iter(self.messages)


class FakePrinter:
    def __init__(self):
        self.messages = []

    def print_message(self, message_text, message_color):
        self.messages.append((message_text, message_color))


def test_version_prints_version_and_message(capsys):
    messager = FakeMessager([VersionMessage("0.0.1", "message text", "White")])
    printer = FakePrinter()
    run_version(VersionCommandContext("1.2.3", messager, printer))

    assert capsys.readouterr().out == "1.2.3\n"
    assert messager.versions == ["1.2.3"]
    assert printer.messages == [("message text\n", "White")]


def test_version_without_message(capsys):
    printer = FakePrinter()
    run_version(VersionCommandContext("1.2.3", FakeMessager([]), printer))

    assert capsys.readouterr().out == "1.2.3\n"
    assert printer.messages == []