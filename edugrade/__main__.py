import argparse
import asyncio
import json
import mimetypes
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from edugrade.core.config import settings
from edugrade.core.dependencies import build_services
from edugrade.core.exceptions import EvaluationException
from edugrade.core.log_config import setup_logging
from edugrade.models.document import DocumentRole, RawFile


def _read_files(paths: Optional[List[str]]) -> List[RawFile]:
    raws = []
    for p in paths or []:
        path = Path(p)
        raws.append(RawFile(
            filename=path.name,
            content=path.read_bytes(),
            media_type=mimetypes.guess_type(path.name)[0],
        ))
    return raws


async def _evaluate(args) -> int:
    services = build_services(settings)
    session = services.new_session()

    try:
        groups = (
            (DocumentRole.QUESTION_PAPER, _read_files(args.question_paper)),
            (DocumentRole.ANSWER_KEY, _read_files(args.answer_key)),
            (DocumentRole.STUDENT_SHEET, _read_files(args.student)),
        )
    except OSError as e:
        print(f"Failed to read file: {e}", file=sys.stderr)
        return 2

    for role, raws in groups:
        for exc in await session.add_files(role, raws):
            print(f"Skipped: {exc.message}", file=sys.stderr)

    try:
        outcome = await session.submit()
    except EvaluationException as e:
        print(f"{e.error_code}: {e.message}\n{e.remediation}", file=sys.stderr)
        return 1

    for w in outcome.warnings:
        print(f"Warning: {w}", file=sys.stderr)
    print(f"Result: {'QUALIFIED' if outcome.qualified else 'DISQUALIFIED'}", file=sys.stderr)
    print(json.dumps(outcome.history_item.to_wire(), ensure_ascii=False, indent=2))
    return 0


def _history(args) -> int:
    services = build_services(settings)
    history = services.history
    if args.delete:
        removed = history.remove(args.delete)
        print(f"Removed {args.delete}" if removed else f"No evaluation with id {args.delete}")
        return 0

    for item in history.items:
        info = item.report.student_info
        when = datetime.fromtimestamp(item.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        verdict = "PASS" if item.report.is_qualified(settings.PASS_MARK_PERCENT) else "FAIL"
        print(f"{item.id}  {when}  {info.name or '-':<24} {info.subject or '-':<16} {item.report.percentage:6.1f}%  {verdict}")
    stats = history.stats()
    print(f"\n{stats.count} reports, average {stats.mean_percentage:.1f}%")
    return 0


def _serve(args) -> int:
    import uvicorn
    uvicorn.run("edugrade.main:app", host=args.host, port=args.port)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="edugrade", description="AI answer sheet evaluation")
    sub = parser.add_subparsers(dest="command", required=True)

    ev = sub.add_parser("evaluate", help="Evaluate answer sheets and store the report")
    ev.add_argument("--question-paper", nargs="+", required=True, help="Question paper scans (PDF/JPEG/PNG)")
    ev.add_argument("--answer-key", nargs="*", default=[], help="Optional answer key scans")
    ev.add_argument("--student", nargs="+", required=True, help="Student answer sheet scans")

    hi = sub.add_parser("history", help="List stored evaluations")
    hi.add_argument("--delete", metavar="ID", help="Delete one stored evaluation")

    sv = sub.add_parser("serve", help="Run the HTTP API")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    if args.command == "evaluate":
        return asyncio.run(_evaluate(args))
    if args.command == "history":
        return _history(args)
    return _serve(args)


if __name__ == "__main__":
    raise SystemExit(main())
