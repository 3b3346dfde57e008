import argparse
import sys
from dotenv import load_dotenv

# .env has to be loaded before anything reads the environment (logger, config, email)
load_dotenv()

from wt.common.logger import log
from wt.core import config


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="worktracker", description="WorkTracker desktop time tracker")
    parser.add_argument("--reset", action="store_true",
                        help="Wipe the stored login and settings, then exit")
    return parser.parse_args(argv)


# Entry point for `python -m wt`
def run(argv=None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    try:
        if args.reset:
            config.reset_state()
            return
        from wt.ui.app import main
        main()
    except SystemExit:
        raise
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
