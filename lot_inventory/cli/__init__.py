"""Command line interface (``python -m lot_inventory.cli``)."""


def main(argv: list[str] | None = None) -> int:
    from .__main__ import main as _main
    return _main(argv)
