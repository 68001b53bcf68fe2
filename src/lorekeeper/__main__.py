from pathlib import Path
import os
import sys

from dotenv import load_dotenv

# Ensure the src directory is on sys.path when running as a script
_SRC_DIR = Path(__file__).resolve().parents[1]
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from lorekeeper.bootstrap import create_narrative_engine
from lorekeeper.presentation.console_host import ConsoleHost

load_dotenv()


def _print_help_surface() -> None:
    print("\nHelp:")
    print("- Menu: type the option number and press ENTER; q quits.")
    print("- Dialogue: ENTER continues, a number picks a choice, s skips, x closes.")
    print("- Catalog issues: run python -m lorekeeper.infrastructure.catalog_validator.")
    print("- Startup issues: verify LOREKEEPER_DATABASE_URL or unset it to use in-memory state.")


def main():
    try:
        engine = create_narrative_engine()
        ConsoleHost(engine).run()
    except KeyboardInterrupt:
        print("\nSession ended.")
    except Exception as exc:
        print("An unexpected error occurred. The session closed safely.")
        print(f"Reason: {exc}")
        if os.getenv("LOREKEEPER_CATALOG_URL"):
            print("The catalog was requested over HTTP; unset LOREKEEPER_CATALOG_URL to use the bundled file.")
        _print_help_surface()


if __name__ == "__main__":
    main()
