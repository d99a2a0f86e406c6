"""Package entry point for ``python -m captionize``.

WHY: Users run the tool as ``python -m captionize segment words.json``
without installing the console script. Python's ``-m`` flag looks for
``__main__.py`` inside the package and executes it.

RULES:
- This file must exist for ``python -m captionize`` to work
- All argument handling lives in captionize.cli
"""

from captionize.cli import main

if __name__ == "__main__":
    main()
