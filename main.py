"""Entry point: ``python main.py --images-dir traps/ --annotate``."""

from cli import main

if __name__ == "__main__":
    raise SystemExit(main())
