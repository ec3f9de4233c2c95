import functools

import pytest

import main
from storage import json_storage, takers


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point every storage class the CLI builds at a temporary directory"""
    monkeypatch.setattr(
        json_storage, "QuestionStorage",
        functools.partial(json_storage.QuestionStorage, tmp_path / "questions.json"),
    )
    monkeypatch.setattr(
        json_storage, "AttemptStorage",
        functools.partial(json_storage.AttemptStorage, tmp_path / "attempts"),
    )
    monkeypatch.setattr(
        takers, "TakerDirectory",
        functools.partial(takers.TakerDirectory, tmp_path / "takers.json"),
    )
    return tmp_path


CSV_HEADER = "id,section,question_text,option_a,option_b,option_c,option_d,correct_option\n"


def test_import_csv_and_stats(data_dir, capsys):
    source = data_dir / "bank.csv"
    source.write_text(
        CSV_HEADER
        + "q1,aptitude,Two plus two?,3,4,5,6,B\n"
        + "q2,KRA Knowledge,What does KRA stand for?,Key Result Area,Key Role Asset,Known Risk Area,None,a\n"
        + "q3,aptitude,Broken?,1,2,3,4,Z\n",
        encoding="utf-8",
    )

    main.main(["import", str(source)])
    out = capsys.readouterr().out
    assert "Added 2 new questions" in out

    main.main(["stats"])
    out = capsys.readouterr().out
    assert "total: 2" in out
    assert "KRA Knowledge: 1" in out
    assert "below draw size" in out


def test_validate_exits_nonzero_on_bad_bank(data_dir, capsys, question_bank):
    bad = question_bank["aptitude"][0]
    storage = json_storage.QuestionStorage()
    storage.save_questions([bad, bad])

    with pytest.raises(SystemExit) as exc_info:
        main.main(["validate"])

    assert exc_info.value.code == 1
    assert "duplicates_removed: 1" in capsys.readouterr().out


def test_taker_admin_commands(data_dir, capsys):
    main.main(["add-taker", "alice", "--password", "pw"])
    main.main(["set-access", "alice", "off"])
    main.main(["set-access", "ghost", "on"])

    out = capsys.readouterr().out
    assert "Taker alice" in out
    assert "alice: can_attempt=False" in out
    assert "Unknown taker: ghost" in out


def test_take_and_list_attempts(data_dir, capsys, monkeypatch, question_bank):
    json_storage.QuestionStorage().save_questions(
        [q for pool in question_bank.values() for q in pool]
    )
    main.main(["add-taker", "alice", "--password", "pw"])

    # Submitting early is refused; the taker then walks to the last question
    commands = iter(["a", "n", "p", "s"] + ["n"] * 29 + ["s"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "pw")
    monkeypatch.setattr("builtins.input", lambda prompt="": next(commands))

    main.main(["take", "alice"])
    out = capsys.readouterr().out
    assert "only available on the final question" in out
    assert "Test Completed!" in out
    assert "/30" in out

    main.main(["attempts", "alice"])
    out = capsys.readouterr().out
    assert "Attempts for alice: 1" in out
    assert "total_attempts: 1" in out

    main.main(["attempts", "alice", "--latest"])
    out = capsys.readouterr().out
    assert "Latest attempt for alice" in out
    assert "/30 (" in out
    assert "KRA Knowledge: " in out


def test_list_takers_and_empty_latest(data_dir, capsys):
    main.main(["add-taker", "alice", "--password", "pw"])
    main.main(["add-taker", "bob", "--password", "pw", "--no-access"])
    capsys.readouterr()

    main.main(["takers"])
    out = capsys.readouterr().out
    assert "Takers: 2" in out
    assert "✅ alice" in out
    assert "🔒 bob" in out

    main.main(["attempts", "bob", "--latest"])
    assert "No attempts recorded for bob" in capsys.readouterr().out


def test_take_rejects_bad_password(data_dir, capsys, monkeypatch):
    main.main(["add-taker", "alice", "--password", "pw"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "wrong")

    main.main(["take", "alice"])

    assert "Invalid credentials" in capsys.readouterr().out


def test_take_rejects_bad_duration(data_dir, capsys, monkeypatch):
    main.main(["add-taker", "alice", "--password", "pw"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "pw")

    main.main(["take", "alice", "--duration", "-5"])

    assert "duration_seconds must be positive" in capsys.readouterr().out


def test_take_without_permission_is_refused(data_dir, capsys, monkeypatch):
    main.main(["add-taker", "alice", "--password", "pw", "--no-access"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "pw")

    main.main(["take", "alice"])

    assert "Cannot start assessment" in capsys.readouterr().out
