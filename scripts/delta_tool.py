from __future__ import annotations

import argparse
import json
import shutil
import sys
from pathlib import Path
from typing import Optional, Sequence

from deltacheats.core.config import CONTENT_HASH_ALGORITHM, PRODUCT_CODE_SOURCE
from deltacheats.exceptions import DeltaCheatsError, InputValidationError
from deltacheats.services.content_hash import compute_content_key
from deltacheats.services.delta_store import SelectedCheat, apply_cheats_to_path, read_overlay
from deltacheats.services.game_id import derive_game_id, get_extractor


def parse_cheat_argument(value: str) -> SelectedCheat:
    name, sep, codes = value.partition("=")
    if not sep or not name.strip():
        raise InputValidationError(f"--cheat expects NAME=CODES, got {value!r}")
    return SelectedCheat(name=name.strip(), codes=codes)


def cmd_identify(args: argparse.Namespace) -> dict:
    rom_path = Path(args.rom)
    return {
        "identifier": derive_game_id(rom_path, get_extractor(args.source)),
        "content_key": compute_content_key(rom_path, args.algorithm),
    }


def cmd_inspect(args: argparse.Namespace) -> dict:
    overlay = read_overlay(args.store, args.key.strip().lower())
    return {name: state.to_dict() for name, state in overlay.items()}


def cmd_apply(args: argparse.Namespace) -> dict:
    source = Path(args.store)
    output = Path(args.output)
    if source.resolve() == output.resolve():
        raise InputValidationError("Output must differ from the input store.")
    selected = [parse_cheat_argument(value) for value in args.cheat]
    shutil.copyfile(source, output)
    try:
        result = apply_cheats_to_path(output, args.key.strip().lower(), selected)
    except DeltaCheatsError:
        output.unlink(missing_ok=True)
        raise
    return {
        "output": str(output),
        "game_pk": result.game_pk,
        "updated": result.updated,
        "inserted": result.inserted,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and patch Delta cheat databases")
    subparsers = parser.add_subparsers(dest="command", required=True)

    identify = subparsers.add_parser("identify", help="Print the game id and content key of a ROM")
    identify.add_argument("rom", help="Path to a .nds ROM")
    identify.add_argument(
        "--source",
        choices=("ndstool", "header"),
        default=PRODUCT_CODE_SOURCE,
        help="Where the product code is read from",
    )
    identify.add_argument("--algorithm", default=CONTENT_HASH_ALGORITHM, help="Content hash algorithm")
    identify.set_defaults(handler=cmd_identify)

    inspect = subparsers.add_parser("inspect", help="Show the cheat state stored for one game")
    inspect.add_argument("store", help="Path to a Delta .sqlite store")
    inspect.add_argument("--key", required=True, help="Content key (ZGAME.ZIDENTIFIER) of the game")
    inspect.set_defaults(handler=cmd_inspect)

    apply = subparsers.add_parser("apply", help="Write selected cheats into a copy of a store")
    apply.add_argument("store", help="Path to a Delta .sqlite store")
    apply.add_argument("--key", required=True, help="Content key (ZGAME.ZIDENTIFIER) of the game")
    apply.add_argument(
        "--cheat",
        action="append",
        required=True,
        metavar="NAME=CODES",
        help="Cheat to enable; repeat for several",
    )
    apply.add_argument("-o", "--output", required=True, help="Where the modified store is written")
    apply.set_defaults(handler=cmd_apply)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        payload = args.handler(args)
    except DeltaCheatsError as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False), file=sys.stderr)
        return 1
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
