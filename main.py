#!/usr/bin/env python3
"""
CertDossier — TLS certificate security dossiers from the command line.
No API keys required. Certificate data comes from the domain itself;
issuance history from the public crt.sh Certificate Transparency search.

Usage:
  python main.py example.com
  python main.py example.com https://github.com/login
  python main.py --file domains.txt
  python main.py --file domains.txt --full
  python main.py example.com --json
  python main.py example.com --format markdown
  python main.py example.com --no-ct
  python main.py example.com --no-color

Environment variables (see core/config.py for the full list):
  TLS_TIMEOUT_SECONDS      Handshake timeout (default 10).
  CT_LOG_TIMEOUT_SECONDS   Per-attempt crt.sh timeout (default 30).
  LOG_LEVEL                Log level used with --verbose (default INFO).
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from core.config import get_settings
from core.errors import CertificateFetchError
from core.formatter import disable_color, print_summary, print_terminal, to_dict, to_json, to_markdown
from core.models import SecurityDossier
from core.pipeline import analyze_domain, dedupe_domains


def _progress(message: str, end: str = "\n") -> None:
    # stderr keeps --json / --format markdown output on stdout clean
    print(message, end=end, file=sys.stderr, flush=True)


def _load_file(path: str) -> list[str]:
    """Read domains from a file — one per line, # comments and blank lines ignored.

    Resolves symlinks and verifies the path is a regular file before reading.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        _progress(f"  [!] '{path}' is not a readable file.")
        return []
    try:
        lines = file_path.read_text().splitlines()
    except OSError as e:
        _progress(f"  [!] Could not read file '{path}': {e}")
        return []
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


def fetch_and_analyze(domain: str, include_ct: bool = True) -> Optional[SecurityDossier]:
    """Analyze a single domain. Returns None on failure.

    Delegates all pipeline logic to core.pipeline.analyze_domain. This function
    exists solely to add CLI progress output around the pipeline call.
    """
    _progress(f"  Analyzing {domain}...", end=" ")
    try:
        dossier = analyze_domain(domain, include_ct=include_ct)
    except ValueError as e:
        _progress(f"\n  [!] {e}. Expected a hostname such as example.com")
        return None
    except CertificateFetchError as e:
        _progress(f"\n  [!] {e}")
        return None

    note = "" if dossier.ct_logs_available or not include_ct else " (CT logs unavailable)"
    _progress(f"done{note}.")
    return dossier


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="certdossier",
        description="Graded, explainable TLS certificate security dossiers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py example.com
  python main.py example.com github.com cloudflare.com
  python main.py --file domains.txt --full
  python main.py example.com --json > dossier.json
  python main.py --file domains.txt --format markdown > report.md
  python main.py example.com --no-ct
        """,
    )
    parser.add_argument(
        "domains",
        nargs="*",
        metavar="DOMAIN",
        help="One or more domains (or URLs) to analyze",
    )
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="Path to a text file with one domain per line (# comments supported)",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Print the full dossier for every domain after the summary",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output structured JSON (shorthand for --format json)",
    )
    parser.add_argument(
        "--format",
        choices=["terminal", "json", "markdown"],
        default=None,
        metavar="FORMAT",
        help="Output format: terminal (default), json, or markdown",
    )
    parser.add_argument(
        "--no-ct",
        action="store_true",
        help="Skip the Certificate Transparency log lookup",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in terminal output",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log fetch activity to stderr at LOG_LEVEL",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Apply color preference before any output
    if args.no_color:
        disable_color()

    # --json is an alias for --format json
    output_format = args.format or ("json" if args.json else "terminal")

    all_domains: list[str] = list(args.domains)
    if args.file:
        all_domains.extend(_load_file(args.file))
    domains = dedupe_domains(all_domains)

    if not domains:
        parser.print_help()
        return

    if args.file and len(all_domains) != len(domains):
        dupes = len(all_domains) - len(domains)
        _progress(f"  Loaded {len(all_domains)} domains, {dupes} duplicate(s) removed, {len(domains)} unique.\n")

    _progress("\nCertDossier — TLS Certificate Analysis")
    _progress("─" * 40)

    results: list[SecurityDossier] = []
    for domain in domains:
        dossier = fetch_and_analyze(domain, include_ct=not args.no_ct)
        if dossier:
            results.append(dossier)

    if results:
        if output_format == "json":
            if len(results) == 1:
                print(to_json(results[0]))
            else:
                print(json.dumps([to_dict(r) for r in results], indent=2))

        elif output_format == "markdown":
            print(to_markdown(results))

        else:
            if len(results) == 1:
                print_terminal(results[0])
            else:
                print_summary(results)
                if args.full:
                    for dossier in results:
                        print_terminal(dossier)
                else:
                    print("\n  Run with --full to see the complete dossier for each domain.\n")

    if len(domains) > len(results):
        failed = len(domains) - len(results)
        _progress(f"  [!] {failed} domain(s) could not be analyzed.\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
