"""Run sanity-backup from a source checkout."""
import sys

if __name__ == "__main__":
    from sanity_backup.cli import main
    sys.exit(main())
