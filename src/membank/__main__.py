"""Entry point: python -m membank [serve|status]

- No args / "serve": MCP server on stdio (production)
- "status":          Print the memory bank status as JSON and exit
"""

from __future__ import annotations

import asyncio
import logging
import sys

from membank.bank.store import MemoryBankStore
from membank.config import MembankConfig, load_config
from membank.server.router import MemoryBankRouter


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _open_store(config: MembankConfig) -> MemoryBankStore:
    return MemoryBankStore(config.storage.db_path, echo=config.storage.echo)


def _run_serve() -> None:
    """MCP server mode: one store for the life of the process."""
    config = load_config()
    _setup_logging(config.log_level)

    from membank.server.stdio import serve

    with _open_store(config) as store:
        try:
            asyncio.run(serve(MemoryBankRouter(store)))
        except KeyboardInterrupt:
            pass


def _run_status() -> None:
    config = load_config()
    _setup_logging(config.log_level)

    with _open_store(config) as store:
        result = MemoryBankRouter(store).call_tool("check_memory_bank_status")
    print(result.to_dict()["content"][0]["text"])
    if result.is_error:
        sys.exit(1)


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if cmd == "serve":
        try:
            _run_serve()
        except Exception:
            logging.getLogger("membank").exception("Fatal error running server")
            sys.exit(1)
    elif cmd == "status":
        _run_status()
    else:
        print("Usage: python -m membank [serve|status]", file=sys.stderr)
        print("  serve  : MCP server on stdio (default)", file=sys.stderr)
        print("  status : Print memory bank status and exit", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
