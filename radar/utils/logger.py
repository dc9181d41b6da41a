# radar/utils/logger.py
# Purpose: tagged debug prints ("[SCAN] ...") gated by the DEBUG env flag or --debug.

import os
import sys

ENABLED = os.getenv("DEBUG", "0").strip().lower() not in {"0", "false", "no", "off", ""}


def log(tag: str, *args) -> None:
    if not ENABLED:
        return
    print(f"[{tag}]", *args)


def warn(tag: str, *args) -> None:
    """Warnings always go to stderr, DEBUG or not."""
    print(f"[{tag}] WARNING:", *args, file=sys.stderr)


def set_enabled(flag: bool) -> None:
    global ENABLED
    ENABLED = bool(flag)
