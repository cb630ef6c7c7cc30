"""Package entry point for ``python -m transcript_timeline``.

WHY: Users run the tool as ``python -m transcript_timeline reconcile ...``
without installing the console script.

HOW: Delegates straight to the CLI's main() function.
"""

from transcript_timeline.cli import main

if __name__ == "__main__":
    main()
