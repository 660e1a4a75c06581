import io
import json
import os
import signal
import time

import pytest
from rich.console import Console

from conftest import REPO_ROOT, build_session
from framechain.annotation.session import dump_session, load_session
from framechain.cli import commands_list, commands_run
from framechain.cli.app import main
from framechain.errors import ArgumentError
from framechain.storage.events import iter_journal


PLUGINS = (f"{REPO_ROOT / 'example_actions.py'}:ACTIONS",)


def _console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def fast_config_ref(tmp_path):
    path = tmp_path / "fast_config.py"
    path.write_text(
        "from framechain.config.schema import RunConfig\n"
        "CONFIG = RunConfig(progress_interval=0.0, init_pause=0.0, commit_pause=0.0)\n",
        encoding="utf-8",
    )
    return f"{path}:CONFIG"


@pytest.fixture
def session_file(tmp_path):
    path = tmp_path / "session.json"
    dump_session(build_session(frame_count=3), path)
    return path


def test_list_prints_registered_actions_with_parameters():
    console = _console()

    commands_list.execute(commands_list.ListCommand(plugins=PLUGINS), console=console)

    output = console.file.getvalue()
    assert "Remove filtered shapes" in output
    assert "Shift shapes" in output
    assert "dx: number = '0'" in output
    assert "pixels | percent" in output


def test_main_dispatches_list(capsys):
    main(["list"])

    assert "Remove filtered shapes" in capsys.readouterr().out


def test_run_commits_to_output_file(tmp_path, session_file, fast_config_ref):
    output = tmp_path / "out.json"
    journal = tmp_path / "events.jsonl"
    console = _console()

    outcome = commands_run.execute(
        commands_run.RunCommand(
            session=session_file,
            chain=("Remove filtered shapes",),
            filters=("label == car",),
            frame_from=1,
            config=fast_config_ref,
            output=output,
            journal=journal,
        ),
        console=console,
    )

    assert outcome.committed
    assert outcome.frames_processed == 2
    labels = sorted(
        (shape["frame"], shape["label"]) for shape in load_session(output).annotations.export().shapes
    )
    assert labels == [(0, "car"), (0, "person"), (1, "person"), (2, "person")]
    assert len(json.loads(session_file.read_text())["annotations"]["shapes"]) == 6
    assert [record["phase"] for record in iter_journal(journal)] == ["opened", "closed"]
    assert "committed frames=2" in console.file.getvalue()


def test_run_with_plugin_parameters_rewrites_session_in_place(session_file, fast_config_ref):
    commands_run.execute(
        commands_run.RunCommand(
            session=session_file,
            chain=("Shift shapes", "Clamp to frame"),
            params=("dx=-15", ""),
            plugins=PLUGINS,
            config=fast_config_ref,
        ),
        console=_console(),
    )

    shapes = load_session(session_file).annotations.export().shapes
    assert all(shape["points"] == [0.0, 10.0, 5.0, 20.0] for shape in shapes)


def test_run_requires_a_chain(session_file):
    with pytest.raises(ArgumentError, match="--chain"):
        commands_run.execute(commands_run.RunCommand(session=session_file), console=_console())


def test_run_rejects_unknown_action(session_file):
    with pytest.raises(ArgumentError, match="Unknown action"):
        commands_run.execute(
            commands_run.RunCommand(session=session_file, chain=("Blur faces",)),
            console=_console(),
        )


def test_chain_parameters_must_match_chain_length():
    assert commands_run.chain_parameters((), 2) == [{}, {}]
    assert commands_run.chain_parameters(("a=1", ""), 2) == [{"a": "1"}, {}]
    with pytest.raises(ArgumentError, match="one per action"):
        commands_run.chain_parameters(("a=1",), 2)


def test_cancel_on_signal_sets_event_and_restores_handler():
    previous = signal.getsignal(signal.SIGINT)

    with commands_run.cancel_on_signal() as stop_event:
        os.kill(os.getpid(), signal.SIGINT)
        for _ in range(100):
            if stop_event.is_set():
                break
            time.sleep(0.01)
        assert stop_event.is_set()

    assert signal.getsignal(signal.SIGINT) is previous
