"""Package entry point for ``python -m storyreel``.

WHY: Users run ``python -m storyreel captions story.txt`` or
``python -m storyreel serve`` without installing the console script.

HOW: Delegates to the CLI's main() function.
"""

from storyreel.cli import main

if __name__ == "__main__":
    main()
