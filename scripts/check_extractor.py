#!/usr/bin/env python3
"""
check_extractor.py: fetch one listing page and show what a site extractor sees.

Use it before and after touching selectors:

    python scripts/check_extractor.py freshersworld \
        https://www.freshersworld.com/jobs/jobsearch/java-developer-jobs-for-freshers

    python scripts/check_extractor.py timesjobs --file saved_page.html

Nothing is written to the database; each card is printed with the identity
tokens and fingerprint it would resolve to (aliases are not applied).
"""

import argparse
import json
import sys
from pathlib import Path

from modules.job_observer.lib.extractors import ExtractionError, all_sites, extract
from modules.job_observer.lib.fingerprint import fingerprint
from modules.job_observer.lib.http_client import HttpClient
from modules.job_observer.lib.normalizers import CompanyNormalizer, LocationNormalizer, RoleNormalizer


# ----------------------------------------------------------------------
def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a site extractor against a live page or a saved file",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("site", help=f"Registered site name ({', '.join(sorted(all_sites()))})")
    parser.add_argument("url", nargs="?", help="Listing page URL to fetch")
    parser.add_argument("--file", type=Path, help="Read the page from a local file instead of fetching")
    parser.add_argument("--timeout", type=float, default=15.0, help="HTTP timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a text listing")
    args = parser.parse_args()
    if not args.url and not args.file:
        parser.error("give a URL or --file")
    return args


# ----------------------------------------------------------------------
def load_document(args: argparse.Namespace) -> tuple[str, str | None]:
    if args.file:
        return args.file.read_text(encoding="utf-8", errors="replace"), args.url
    client = HttpClient(timeout=args.timeout)
    try:
        result = client.fetch(args.url)
    finally:
        client.close()
    print(f"HTTP {result.status_code} {result.url} ({len(result.text)} chars)", file=sys.stderr)
    return result.text, result.url


# ----------------------------------------------------------------------
def main() -> int:
    args = parse_args()
    document, base_url = load_document(args)

    try:
        records = extract(document, args.site, base_url=base_url)
    except ExtractionError as e:
        print(f"PARSE_FAIL: {e}", file=sys.stderr)
        return 2

    companies, roles, locations = CompanyNormalizer(), RoleNormalizer(), LocationNormalizer()
    rows = []
    for rec in records:
        c = companies.normalize(rec.raw_company)
        r = roles.normalize(rec.raw_title)
        loc = locations.normalize(rec.raw_location)
        rows.append({
            "title": rec.raw_title,
            "company": rec.raw_company,
            "location": rec.raw_location,
            "url": rec.listing_url,
            "tokens": [c, r, loc],
            "fingerprint": fingerprint(c, r, loc),
        })

    if args.json:
        print(json.dumps(rows, indent=2, ensure_ascii=False))
    else:
        for i, row in enumerate(rows, 1):
            print(f"{i:3d}. {row['title']} @ {row['company']} [{row['location']}]")
            print(f"     {' / '.join(row['tokens'])}  {row['fingerprint'][:16]}")
            print(f"     {row['url']}")
        print(f"\n{len(rows)} card(s) extracted.", file=sys.stderr)
        if not rows:
            print("Zero cards: open the page source and re-check the card selector.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
