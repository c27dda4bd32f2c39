#!/usr/bin/env python3
# Seed the counter table with one zero-view record per slug.
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from providers._mod_AIRTABLE import AirtableConfig, AirtableRecords
from services.reconcile import Reconciler
from vb_platform.config_base import is_configured, load_config, section
from vb_platform.errors import ViewBridgeError


def read_slugs(args: Iterable[str], file: str | None) -> list[str]:
    out = [a.strip() for a in args if a and a.strip()]
    if file:
        text = sys.stdin.read() if file == "-" else Path(file).read_text("utf-8")
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                out.append(line)
    return out


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Create missing counter records for the given slugs.")
    p.add_argument("slugs", nargs="*", help="post slugs")
    p.add_argument("-f", "--file", help="file with one slug per line ('-' reads stdin)")
    return p


def main(argv: list[str] | None = None) -> int:
    ns = build_parser().parse_args(argv)
    slugs = read_slugs(ns.slugs, ns.file)
    if not slugs:
        print("[!] No slugs given.")
        return 2

    cfg = load_config()
    if not is_configured(cfg, "airtable"):
        print("[!] Airtable not configured (AIRTABLE_API_KEY, AIRTABLE_BASE_ID, AIRTABLE_TABLE_NAME).")
        return 2

    records = AirtableRecords(AirtableConfig.from_cfg(cfg))
    scfg = section(cfg, "sync")
    # init only touches the record store
    rec = Reconciler(
        records,
        batch_size=int(scfg.get("batch_size", 10)),
        batch_pause_ms=int(scfg.get("batch_pause_ms", 200)),
    )
    try:
        res = rec.init_slugs(slugs)
    except ViewBridgeError as e:
        print(f"[!] {e}")
        return 1

    st = res["stats"]
    print(f"Requested: {st['requested']}  existing: {st['existing']}  created: {st['created_count']}  errors: {st['error_count']}")
    for err in res["errors"]:
        print(f"  [!] {err['slug']}: {err['error']}")
    return 1 if res["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
