"""Package entry point for ``python -m cosyvoice_streamer``.

WHY: Users run the client as ``python -m cosyvoice_streamer --text "..."``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates to the CLI's main() function.
"""

from cosyvoice_streamer.cli import main

if __name__ == "__main__":
    main()
