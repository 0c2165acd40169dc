import sys

from phrasal.phrasal_registry import bootstrap, vocabulary


def main(argv=None) -> int:
    """Print the phrase vocabulary, or definition ids with `--ids`."""
    args = sys.argv[1:] if argv is None else list(argv)
    registry = bootstrap()
    if "--ids" in args:
        for definition in registry.sync + registry.async_:
            kind = "async" if definition.is_async else "sync"
            print(f"{definition.id}\t{kind}\t{definition!r}")
        return 0
    if args and args[0] not in ("-h", "--help"):
        print(f"Unknown option: {args[0]}", file=sys.stderr)
        return 2
    if args:
        print("usage: python -m phrasal [--ids]")
        return 0
    for phrase in vocabulary(registry):
        print(phrase)
    return 0


if __name__ == "__main__":
    sys.exit(main())
