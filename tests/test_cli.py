"""Tests for the command-line front-end and chat loop."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import httpx
import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.input import DummyInput
from prompt_toolkit.output import DummyOutput
from rich.console import Console

from gnomelama.cli import create_parser, main
from gnomelama.config.schema import Config, LoggingConfig
from gnomelama.core.llm.provider import ModelDescriptor, ProviderKind
from gnomelama.core.llm.registry import ModelListing, ModelRegistry
from gnomelama.documents import FILES_ATTACHED_MARKER
from gnomelama.logging import TRACE, VERBOSE, resolve_level
from gnomelama.repl import ChatRepl, print_models, stream_reply
from gnomelama.session import SessionManager
from tests.utils import FakeProvider, RecordingTransport, ndjson, unbuffered


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.fixture
def app_session():
    with create_app_session(input=DummyInput(), output=DummyOutput()):
        yield


def _output(console: Console) -> str:
    return console.file.getvalue()


def _ollama_manager(handler) -> tuple[SessionManager, RecordingTransport]:
    transport = RecordingTransport(handler)
    config = Config()
    config.stream = unbuffered()
    return SessionManager.from_config(config, transport=transport, persist_model=False), transport


class TestParser:
    """Tests for command-line parsing."""

    def test_defaults(self):
        args = create_parser().parse_args([])
        assert args.verbose == 0
        assert args.model is None
        assert args.attach == []
        assert args.prompt is None
        assert not args.list_models

    def test_all_options(self):
        args = create_parser().parse_args(
            ["-vv", "-m", "gpt-4o", "-a", "a.txt", "--attach", "b.pdf", "Summarize these"]
        )
        assert args.verbose == 2
        assert args.model == "gpt-4o"
        assert args.attach == [Path("a.txt"), Path("b.pdf")]
        assert args.prompt == "Summarize these"

    def test_check_tools(self, monkeypatch, capsys):
        monkeypatch.setattr("gnomelama.documents.converter.shutil.which", lambda tool: None)
        assert main(["--check-tools"]) == 0


class TestResolveLevel:
    """Tests for log level selection."""

    def test_default_info(self):
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    def test_level_name(self):
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="bogus")) == logging.INFO

    def test_verbose_wins(self):
        assert resolve_level(LoggingConfig(level="ERROR", verbose=3)) == VERBOSE
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE


class TestPrintModels:
    def test_marks_current_model(self, console):
        listing = ModelListing(provider_errors={"openai": "No OpenAI API key configured"})
        listing.models.append(ModelDescriptor("llama3.2:1b", ProviderKind.LOCAL, "ollama"))
        print_models(console, listing, "llama3.2:1b")

        output = _output(console)
        assert "llama3.2:1b *" in output
        assert "No OpenAI API key configured" in output

    def test_error_only(self, console):
        print_models(console, ModelListing(error="No models available (x)"))
        assert "No models available (x)" in _output(console)


class TestStreamReply:
    @pytest.mark.asyncio
    async def test_prints_reply(self, console):
        manager, _ = _ollama_manager(lambda r: httpx.Response(200, content=ndjson({"response": "Hi"}, {"response": " you"})))

        reply = await stream_reply(manager, console, "Hello")

        assert reply == "Hi you"
        assert "Hi you" in _output(console)
        assert "(stopped)" not in _output(console)


class TestChatRepl:
    """Tests for slash commands and sending."""

    @pytest.mark.asyncio
    async def test_model_command_fetches_listing(self, console, app_session):
        registry = ModelRegistry([
            FakeProvider("ollama", ProviderKind.LOCAL, models=["llama3.2:1b"]),
            FakeProvider("openai", models=["gpt-4o"]),
        ])
        manager = SessionManager(registry, persist_model=False)
        repl = ChatRepl(manager, console)

        await repl.handle_command("/model gpt-4o")

        assert manager.model.provider == "openai"
        assert "Model set to gpt-4o (openai)" in _output(console)

    @pytest.mark.asyncio
    async def test_model_command_without_args(self, console, app_session):
        repl = ChatRepl(SessionManager(ModelRegistry([]), persist_model=False), console)
        await repl.handle_command("/model")
        assert "Current model: llama3.2:1b" in _output(console)

    @pytest.mark.asyncio
    async def test_unknown_command(self, console, app_session):
        repl = ChatRepl(SessionManager(ModelRegistry([]), persist_model=False), console)
        await repl.handle_command("/frobnicate")
        assert "Unknown command: /frobnicate" in _output(console)

    @pytest.mark.asyncio
    async def test_quit(self, console, app_session):
        repl = ChatRepl(SessionManager(ModelRegistry([]), persist_model=False), console)
        repl._running = True
        await repl.handle_command("/quit")
        assert repl._running is False

    @pytest.mark.asyncio
    async def test_attach_then_send(self, console, app_session, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("remember the milk", encoding="utf-8")
        manager, transport = _ollama_manager(lambda r: httpx.Response(200, content=ndjson({"response": "Noted"})))
        repl = ChatRepl(manager, console)

        await repl.handle_command(f"/attach {path}")
        assert len(repl.pending_attachments) == 1

        await repl.send("What should I buy?")

        sent = json.loads(transport.payloads()[0]["prompt"])
        assert sent["prompt"] == "What should I buy?"
        assert sent["files"][0]["content"] == "remember the milk"
        assert manager.get_conversation_history()[0].text == "What should I buy?" + FILES_ATTACHED_MARKER
        assert repl.pending_attachments == []

    @pytest.mark.asyncio
    async def test_attach_missing_file(self, console, app_session, tmp_path):
        repl = ChatRepl(SessionManager(ModelRegistry([]), persist_model=False), console)
        await repl.handle_command(f"/attach {tmp_path / 'missing.txt'}")
        assert repl.pending_attachments == []
        assert "Could not attach" in _output(console)

    @pytest.mark.asyncio
    async def test_clear(self, console, app_session):
        manager, _ = _ollama_manager(lambda r: httpx.Response(200, content=ndjson({"response": "ok"})))
        repl = ChatRepl(manager, console)
        await repl.send("hi")

        await repl.handle_command("/clear")

        assert manager.get_conversation_history() == []
        assert "Conversation cleared." in _output(console)
