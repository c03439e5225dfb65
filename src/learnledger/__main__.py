"""Allow ``python -m learnledger``."""

from learnledger.cli import main

if __name__ == "__main__":
    main()
