from pathlib import Path

from src.contextflow.core.session_state import SessionState, session_file_path


def test_session_state_round_trip(tmp_path: Path):
    session = SessionState(root=tmp_path)
    assert session.load_username() is None

    session.save_username("ada")
    assert session.path == tmp_path / "memory" / "session.json"
    assert SessionState(root=tmp_path).load_username() == "ada"

    session.clear()
    assert session.load_username() is None
    session.clear()


def test_session_state_ignores_corrupt_file(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert SessionState(path).load_username() is None


def test_session_file_path_from_config(tmp_path: Path):
    (tmp_path / "config.json").write_text('{"storage": {"session_path": "state/who.json"}}', encoding="utf-8")
    assert session_file_path(root=tmp_path) == tmp_path / "state" / "who.json"


def test_session_state_ignores_non_utf8_file(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    assert SessionState(path).load_username() is None
