"""CSV question import."""
import pytest

import importer
from importer import parse_csv, parse_row, run_import

HEADER = "question_text,option_a,option_b,option_c,option_d,correct_answer,explanation,difficulty,exam_type_id\n"


def test_parse_row_full():
    row = parse_row(["What is 2+2?", "3", "4", "5", "6", "b", "Basic sums", "Easy", "jamb"], "t1")
    assert row["correct_answer"] == "B"
    assert row["difficulty"] == "easy"
    assert row["exam_type_id"] == "jamb"
    assert row["topic_id"] == "t1"


def test_parse_row_defaults_optional_fields():
    row = parse_row([" What is H2O? ", "Water", "Salt", "Sugar", "Oil", "A"], "t1")
    assert row["question_text"] == "What is H2O?"
    assert row["explanation"] is None
    assert row["exam_type_id"] is None
    assert row["difficulty"] == "medium"


def test_parse_row_rejects_bad_rows():
    assert parse_row(["Q?", "a", "b", "c", "", "A"], "t1") is None
    assert parse_row(["Q?", "a", "b", "c", "d", "E"], "t1") is None
    assert parse_row(["Q?", "a", "b"], "t1") is None


def test_unknown_difficulty_becomes_medium():
    assert parse_row(["Q?", "a", "b", "c", "d", "C", "", "extreme"], "t1")["difficulty"] == "medium"


def test_parse_csv_skips_header_blank_and_malformed():
    text = HEADER + (
        '"Which is a noun, in this list?",run,table,quickly,blue,B,,hard,\n'
        "\n"
        "Broken row,only,three\n"
        "Capital of Nigeria?,Lagos,Abuja,Kano,Ibadan,B,,,\n"
    )
    rows = parse_csv(text, "t1")
    assert [r["question_text"] for r in rows] == ["Which is a noun, in this list?", "Capital of Nigeria?"]
    assert rows[0]["difficulty"] == "hard"


def test_header_only_csv():
    assert parse_csv(HEADER, "t1") == []


def test_run_import_dry_run(tmp_path, capsys):
    path = tmp_path / "questions.csv"
    path.write_text(HEADER + "Q?,a,b,c,d,A,,,\n", encoding="utf-8")
    assert run_import(path, "t1", dry_run=True) == 1
    assert "Dry run" in capsys.readouterr().out


def test_run_import_inserts(tmp_path, db, fake_client, monkeypatch):
    monkeypatch.setattr(importer, "get_database_uncached", lambda: db)
    path = tmp_path / "questions.csv"
    path.write_text(HEADER + "Q1?,a,b,c,d,A,,,\nQ2?,a,b,c,d,D,,,\nQ3?,a,b,c,d,C,,,\n", encoding="utf-8")
    assert run_import(path, "t1", chunk_size=2) == 3
    assert len(fake_client.tables["questions"]) == 3
    assert len(fake_client.writes("questions")) == 2


def test_run_import_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_import(tmp_path / "missing.csv", "t1")
