#!/usr/bin/env python3
import argparse
import json
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

TELEMETRY_PATTERN = re.compile(r"match_telemetry=(\{.*\})")


def _iter_lines(paths: List[str]) -> Iterable[str]:
    if not paths:
        for line in sys.stdin:
            yield line.rstrip("\n")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                yield line.rstrip("\n")


def parse_payload(line: str) -> Optional[Dict[str, Any]]:
    match = TELEMETRY_PATTERN.search(line)
    if not match:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def _safe_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def build_report(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    category_counts: Counter[str] = Counter()
    empty_runs = 0
    urgent_runs = 0
    candidate_sum = 0
    eligible_sum = 0
    top_scores: List[int] = []

    for row in rows:
        category_counts[str(row.get("category_id", "unknown"))] += 1
        if bool(row.get("is_urgent", False)):
            urgent_runs += 1
        candidate_sum += _safe_int(row.get("candidates", 0))
        eligible_sum += _safe_int(row.get("eligible", 0))
        if _safe_int(row.get("returned", 0)) == 0:
            empty_runs += 1
        if row.get("top_score") is not None:
            top_scores.append(_safe_int(row.get("top_score")))

    total = len(rows)
    return {
        "total_runs": total,
        "category_counts": dict(category_counts.most_common()),
        "urgent_rate": round(urgent_runs / total, 4) if total else 0.0,
        "empty_result_rate": round(empty_runs / total, 4) if total else 0.0,
        "avg_candidates": round(candidate_sum / total, 4) if total else 0.0,
        "eligibility_rate": round(eligible_sum / candidate_sum, 4) if candidate_sum else 0.0,
        "avg_top_score": round(sum(top_scores) / len(top_scores), 2) if top_scores else None,
    }


def print_human(report: Dict[str, Any]) -> None:
    print(f"Total match runs: {report['total_runs']}")
    print(f"Urgent rate: {report['urgent_rate']:.2%}")
    print(f"Empty result rate: {report['empty_result_rate']:.2%}")
    print(f"Eligibility rate: {report['eligibility_rate']:.2%} (avg candidates {report['avg_candidates']:.2f})")
    if report["avg_top_score"] is not None:
        print(f"Average top score: {report['avg_top_score']:.2f}")
    print("Runs per category:")
    for category, count in report["category_counts"].items():
        print(f"  - {category}: {count}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize ServiceHub match_telemetry logs.")
    parser.add_argument("log_files", nargs="*", help="Log files to parse. If omitted, read stdin.")
    parser.add_argument("--json-out", default="", help="Optional path to write JSON summary.")
    args = parser.parse_args()

    rows: List[Dict[str, Any]] = []
    for line in _iter_lines(args.log_files):
        payload = parse_payload(line)
        if payload:
            rows.append(payload)

    report = build_report(rows)
    print_human(report)

    if args.json_out:
        path = Path(args.json_out)
        path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote report: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
