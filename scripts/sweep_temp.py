"""
Sweep the temp directory by hand.

The bot already sweeps after every command and every few minutes; this
is for clearing out leftovers after a crash or when the bot is down.

Usage:
    python -m scripts.sweep_temp
    python -m scripts.sweep_temp --max-age 0       # remove everything
    python scripts/sweep_temp.py --dir /data/temp
"""

import argparse
import sys
from pathlib import Path

# Ensure common/ is importable when running as a standalone script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from common.config import TEMP_DIR, TEMP_FILE_MAX_AGE
from common.tempfiles import sweep_temp_dir


def main(argv=None):
    parser = argparse.ArgumentParser(description="Delete old files from the temp directory")
    parser.add_argument("--dir", default=str(TEMP_DIR), help="Directory to sweep (default: %(default)s)")
    parser.add_argument("--max-age", type=float, default=TEMP_FILE_MAX_AGE,
                        help="Remove files older than this many seconds (default: %(default)s)")
    args = parser.parse_args(argv)

    print(f"Temp directory: {args.dir}")
    print(f"Max age:        {args.max_age:g}s")

    removed = sweep_temp_dir(args.dir, max_age=args.max_age)
    for path in removed:
        print(f"  removed {path.name}")
    print(f"\n{len(removed)} file(s) removed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
