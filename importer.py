"""Ingest a questions CSV for one topic and bulk INSERT into questions."""
import argparse
import csv
import io
import logging
from pathlib import Path

from db import get_database_uncached
from engine import OPTION_LABELS, QUESTION_CHUNK_SIZE

logger = logging.getLogger(__name__)

# question_text, option_a, option_b, option_c, option_d, correct_answer, explanation, difficulty, exam_type_id
COLUMNS = (
    "question_text", "option_a", "option_b", "option_c", "option_d",
    "correct_answer", "explanation", "difficulty", "exam_type_id",
)
REQUIRED = COLUMNS[:6]
DIFFICULTIES = {"easy", "medium", "hard"}


def parse_row(fields: list[str], topic_id: str) -> dict | None:
    """Turn one CSV record into a questions row. Returns None if a required field is missing."""
    values = [f.strip() for f in fields] + [""] * (len(COLUMNS) - len(fields))
    row = dict(zip(COLUMNS, values))
    if not all(row[c] for c in REQUIRED):
        return None
    correct = row["correct_answer"].upper()
    if correct not in OPTION_LABELS:
        return None
    difficulty = row["difficulty"].lower() or "medium"
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"
    return {
        "topic_id": topic_id,
        "question_text": row["question_text"],
        "option_a": row["option_a"],
        "option_b": row["option_b"],
        "option_c": row["option_c"],
        "option_d": row["option_d"],
        "correct_answer": correct,
        "explanation": row["explanation"] or None,
        "difficulty": difficulty,
        "exam_type_id": row["exam_type_id"] or None,
    }


def parse_csv(text: str, topic_id: str) -> list[dict]:
    """Parse CSV text (first row is a header). Blank and malformed rows are dropped."""
    rows = []
    records = [r for r in csv.reader(io.StringIO(text)) if any(f.strip() for f in r)]
    for line_no, fields in enumerate(records[1:], start=2):
        row = parse_row(fields, topic_id)
        if row is None:
            logger.debug("Skipping malformed CSV row %d", line_no)
            continue
        rows.append(row)
    return rows


def load_and_transform(path: Path, topic_id: str) -> list[dict]:
    return parse_csv(path.read_text(encoding="utf-8"), topic_id)


def run_import(csv_path: Path, topic_id: str, chunk_size: int = QUESTION_CHUNK_SIZE, dry_run: bool = False) -> int:
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV not found: {csv_path}")
    rows = load_and_transform(csv_path, topic_id)
    if not rows:
        print(f"No valid questions found in {csv_path}")
        return 0
    if dry_run:
        print(f"Dry run: would insert {len(rows)} questions from {csv_path}")
        print("Sample row:", rows[0])
        return len(rows)
    inserted = get_database_uncached().insert_questions(rows, chunk_size=chunk_size)
    print(f"Inserted {inserted} questions from {csv_path}")
    return inserted


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import a questions CSV into Supabase for one topic.")
    parser.add_argument("csv", help="Path to .csv (header row first)")
    parser.add_argument("--topic-id", required=True, help="Topic the questions belong to")
    parser.add_argument("--chunk-size", type=int, default=QUESTION_CHUNK_SIZE, help=f"Insert chunk size (default {QUESTION_CHUNK_SIZE})")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not insert")
    args = parser.parse_args()
    run_import(Path(args.csv), args.topic_id, chunk_size=args.chunk_size, dry_run=args.dry_run)
