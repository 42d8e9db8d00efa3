"""Package entry point for ``python -m caption_sync``.

WHY: Users run the tools as ``python -m caption_sync layout ...``. Python's
``-m`` flag looks for ``__main__.py`` inside the package and executes it.

HOW: Delegates to the CLI's main() function.
"""

import sys

from caption_sync.cli import main

if __name__ == "__main__":
    sys.exit(main())
