"""
Convert FAQ spreadsheets (XLSX) into a structured knowledge source.

Input assumptions:
- One row per FAQ entry with columns ``question`` and ``answer``
  (German headers ``Frage`` / ``Antwort`` are accepted as well).
- Optional columns: ``keywords`` (comma separated), ``category``, ``tags``.
- Every sheet of every workbook is read; rows without question or answer are skipped.

Output: a JSON list of flat records, readable by the knowledge directory loader:
[
  {"question": str, "answer": str, "keywords": [str], "category": str, "tags": [str]},
  ...
]

Usage:
  python scripts/preprocess.py --input_dir data --output knowledge/imported-faqs.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List

import pandas as pd

COLUMN_ALIASES = {
    "frage": "question",
    "antwort": "answer",
    "schlagworte": "keywords",
    "stichworte": "keywords",
    "kategorie": "category",
}


def _to_str(x: object) -> str:
    if x is None:
        return ""
    if isinstance(x, float) and pd.isna(x):
        return ""
    return str(x).strip()


def _split(value: str) -> List[str]:
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def _build_record(row: pd.Series) -> Dict:
    question = _to_str(row.get("question"))
    answer = _to_str(row.get("answer"))
    if not question or not answer:
        return {}
    record: Dict = {"question": question, "answer": answer}
    keywords = _split(_to_str(row.get("keywords")))
    if keywords:
        record["keywords"] = keywords
    category = _to_str(row.get("category"))
    if category:
        record["category"] = category
    tags = _split(_to_str(row.get("tags")))
    if tags:
        record["tags"] = tags
    return record


def process_file(path: Path) -> List[Dict]:
    sheets = pd.read_excel(path, sheet_name=None)
    records: List[Dict] = []
    for sheet_name, df in sheets.items():
        df = df.rename(columns=lambda c: COLUMN_ALIASES.get(str(c).strip().lower(), str(c).strip().lower()))
        before = len(records)
        for _, row in df.iterrows():
            record = _build_record(row)
            if record:
                records.append(record)
        print(f"{path.name}/{sheet_name}: {len(records) - before} records")
    return records


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert XLSX FAQ sheets to a JSON knowledge source.")
    parser.add_argument("--input_dir", default="data", help="Directory containing .xlsx files")
    parser.add_argument("--output", default="knowledge/imported-faqs.json", help="Output JSON file path")
    args = parser.parse_args()

    input_dir = Path(args.input_dir)
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    xlsx_files = sorted([p for p in input_dir.glob("*.xlsx") if p.is_file()])
    if not xlsx_files:
        print(f"No .xlsx files found in {input_dir}")
        return

    all_records: List[Dict] = []
    for f in xlsx_files:
        all_records.extend(process_file(f))

    with output_path.open("w", encoding="utf-8") as w:
        json.dump(all_records, w, ensure_ascii=False, indent=2)

    print(f"Wrote {len(all_records)} records to {output_path}")


if __name__ == "__main__":
    main()
