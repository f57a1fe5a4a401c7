import sys
from pathlib import Path

from jpscript import ExpressionRunner, Printer, deserialize
from jpscript.jpscript_serialize import format_from_suffix


def load_document(file_path: str):
    """Read a JSON or YAML document; the file suffix picks the format, else the content is sniffed."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return deserialize(source, fmt=format_from_suffix(p.suffix))


def run_expression(runner: ExpressionRunner, printer: Printer, expr: str, document) -> bool:
    result = runner.handle_expression(expr, document)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return False
    print(printer.pformat(result.value))
    return True


def main():
    """Evaluate an expression against a document, or start a REPL over it.

    Usage: jpscript_cli.py DOCUMENT [EXPRESSION]
    """
    if len(sys.argv) < 2 or sys.argv[1].startswith("-"):
        print("usage: jpscript_cli.py DOCUMENT [EXPRESSION]", file=sys.stderr)
        raise SystemExit(2)

    runner = ExpressionRunner()
    printer = Printer(compact=False)
    document = load_document(sys.argv[1])

    if len(sys.argv) > 2:
        ok = run_expression(runner, printer, " ".join(sys.argv[2:]), document)
        raise SystemExit(0 if ok else 1)

    print("jpscript REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit. '@' is the loaded document.")

    while True:
        try:
            raw = input(">> ")
        except EOFError:
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            break
        run_expression(runner, printer, line, document)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
