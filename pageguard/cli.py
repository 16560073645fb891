"""Command line entry point for pageguard."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from bs4 import BeautifulSoup

from pageguard.config import settings as default_settings
from pageguard.detectors.types import finding_to_dict
from pageguard.session import ScanSession

logger = logging.getLogger(__name__)


def _build_session(args) -> ScanSession:
    settings = default_settings
    if args.no_semantic:
        settings = settings.model_copy(update={"semantic_enabled": False})
    return ScanSession.from_settings(settings)


def _scan(args) -> int:
    source = Path(args.file)
    html = source.read_text(encoding="utf-8")
    soup = BeautifulSoup(html, "html.parser")

    session = _build_session(args)
    result = asyncio.run(session.scan_now(soup, url=args.url or source.resolve().as_uri()))

    if args.output:
        Path(args.output).write_text(str(soup), encoding="utf-8")
        logger.info("Wrote sanitized document to %s", args.output)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        for finding in result.findings:
            status = "sanitized" if finding.sanitized else "reported"
            print(f"{finding.type.value:<20} {finding.subtype:<40} {finding.score:.2f}  {status}")
        print(f"{result.threat_count} threat(s), {result.sanitized_count} sanitized")
    return 1 if result.findings and args.fail_on_threat else 0


def _sanitize_text(args) -> int:
    text = sys.stdin.read() if args.file == "-" else Path(args.file).read_text(encoding="utf-8")
    session = _build_session(args)
    processed = asyncio.run(session.orchestrator.process_content(text))

    if args.json:
        payload = dict(processed, findings=[finding_to_dict(f) for f in processed["findings"]])
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(processed["cleaned"])
    return 1 if processed["findings"] and args.fail_on_threat else 0


def _serve(args) -> int:
    import uvicorn

    uvicorn.run(
        "pageguard.main:app",
        host=args.host or default_settings.host,
        port=args.port or default_settings.port,
        reload=default_settings.debug,
    )
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="pageguard")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    scan = sub.add_parser("scan", help="scan and sanitize an HTML file")
    scan.add_argument("file")
    scan.add_argument("--url", default=None, help="URL reported for the document")
    scan.add_argument("--output", "-o", default=None, help="write the sanitized HTML here")
    scan.add_argument("--no-semantic", action="store_true", help="skip embedding analysis")
    scan.add_argument("--json", action="store_true", help="print findings as JSON")
    scan.add_argument("--fail-on-threat", action="store_true", help="exit 1 when anything was found")

    text = sub.add_parser("sanitize-text", help="sanitize plain text (use - for stdin)")
    text.add_argument("file")
    text.add_argument("--no-semantic", action="store_true", help="skip embedding analysis")
    text.add_argument("--json", action="store_true", help="print the full result as JSON")
    text.add_argument("--fail-on-threat", action="store_true", help="exit 1 when anything was found")

    serve = sub.add_parser("serve", help="run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (args.debug or default_settings.debug) else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if args.cmd == "scan":
        return _scan(args)
    if args.cmd == "sanitize-text":
        return _sanitize_text(args)
    if args.cmd == "serve":
        return _serve(args)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
