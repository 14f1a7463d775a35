import sys
from bt.common.logger import log
from bt.ui.cli import main

# Entry point for `python -m bt`, the `bt` console script, and the OS scheduler's fire handler.
def run() -> None:
    try:
        sys.exit(main())
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
