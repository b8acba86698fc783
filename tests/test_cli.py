import json

import pytest

from fibra.runtime import cli, main, parse_args


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("fibra.runtime.LOGBOOK_FILE", str(tmp_path / "fibra.logbook.jsonl"))
    return tmp_path


def test_init_then_show(capsys, workdir):
    assert main(["--airdrop", "5000000", "--init", "3"]) == 0
    out = capsys.readouterr().out
    assert "Transaction committed [sys]" in out
    assert "Program log: done: 3" in out
    assert (workdir / "fibra.accounts.json").exists()
    assert (workdir / "fibra.logbook.jsonl").exists()

    assert main(["--show"]) == 0
    assert "a=2 b=3 remaining=0 [terminal]" in capsys.readouterr().out


def test_resume_of_terminal_record_reports_result(capsys):
    main(["--airdrop", "5000000", "--init", "1"])
    capsys.readouterr()

    assert main(["--resume"]) == 0
    out = capsys.readouterr().out
    assert "Program log: done: 1" in out
    assert "[pure]" in out


def test_too_many_steps_roll_back(capsys):
    assert main(["--airdrop", "5000000", "--init", "5"]) == 1
    out = capsys.readouterr().out
    assert "rolled back" in out
    assert "CallDepthExceeded" in out

    main(["--show"])
    assert "absent" in capsys.readouterr().out


def test_raised_ceiling_allows_more_steps(capsys):
    assert main(["--airdrop", "5000000", "--max-depth", "8", "--init", "7"]) == 0
    assert "a=13 b=21 remaining=0" in capsys.readouterr().out


def test_unfunded_identity_cannot_init(capsys):
    assert main(["--init", "1"]) == 1
    assert "InsufficientFunds" in capsys.readouterr().out


def test_step_count_must_fit_u64(capsys):
    assert main(["--airdrop", "5000000", "--init", str(2**64)]) == 2
    assert "unsigned 64-bit" in capsys.readouterr().out


def test_address_is_printed(capsys):
    assert main(["--address"]) == 0
    out = capsys.readouterr().out
    assert "derived address:" in out
    assert "bump:" in out


def test_init_and_resume_are_exclusive():
    with pytest.raises(SystemExit):
        parse_args(["--init", "2", "--resume"])


def test_hash_of_store(capsys, workdir):
    main(["--airdrop", "1"])
    capsys.readouterr()

    assert main(["--hash", "fibra.accounts.json"]) == 0
    assert "SHA256(fibra.accounts.json)" in capsys.readouterr().out


def test_logbook_is_empty_before_first_run(capsys):
    assert main(["--logbook"]) == 0
    assert "No logbook yet." in capsys.readouterr().out


def test_bare_airdrop_uses_default_amount(capsys):
    assert main(["--airdrop", "--init", "2"]) == 0
    out = capsys.readouterr().out
    assert "Airdropped 10000000 lamports" in out
    assert "a=1 b=2 remaining=0" in out


@pytest.mark.parametrize("value", ["0", "-3", "deep"])
def test_max_depth_must_be_positive(value, capsys):
    with pytest.raises(SystemExit):
        parse_args(["--max-depth", value, "--show"])
    assert "--max-depth" in capsys.readouterr().err


def test_rollback_exports_failed_frames(monkeypatch, capsys):
    exported = []
    monkeypatch.setattr(cli, "export_graphviz", lambda frames, output: exported.append((frames, output)))

    assert main(["--airdrop", "5000000", "--init", "5", "--trace", "calls.svg"]) == 1

    [(frames, output)] = exported
    assert output == "calls.svg"
    assert len(frames) == 6
    assert any(frame.status == "failed" for frame in frames)


def test_committed_run_can_be_traced_and_drawn(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "export_graphviz", lambda frames, output: calls.append(("svg", len(frames))))
    monkeypatch.setattr(cli, "visualize_calls", lambda frames: calls.append(("draw", len(frames))))

    assert main(["--airdrop", "5000000", "--init", "2", "--trace", "calls.svg", "--visualize"]) == 0

    assert calls == [("svg", 4), ("draw", 4)]


def test_verify_checks_logbook_signature(monkeypatch, capsys, workdir):
    main(["--airdrop", "5000000", "--init", "1"])
    entry = json.loads((workdir / "fibra.logbook.jsonl").read_text().splitlines()[-1])
    capsys.readouterr()

    monkeypatch.setattr("builtins.input", lambda prompt="": entry["signature"])
    assert main(["--verify", entry["hash"]]) == 0
    assert "✓ Signature valid" in capsys.readouterr().out

    monkeypatch.setattr("builtins.input", lambda prompt="": "00" * 64)
    assert main(["--verify", entry["hash"]]) == 1
    assert "✗ Invalid signature" in capsys.readouterr().out


def test_diff_of_two_stores(capsys, workdir):
    main(["--airdrop", "1", "--store", "before.json"])
    main(["--airdrop", "2", "--store", "after.json"])
    capsys.readouterr()

    assert main(["--diff", "before.json", "after.json"]) == 0
    out = capsys.readouterr().out
    assert "Snapshots differ" in out
    assert "changed" in out
