#!/usr/bin/env python3
"""Compatibility wrapper: ``trash-recover QUERY`` runs ``trashcan recover QUERY``."""

from __future__ import annotations

import sys

from trashcan.trash_cli import main


def run() -> int:
    return main(["recover", *sys.argv[1:]])


if __name__ == "__main__":
    raise SystemExit(run())
