# (c) Copyright 2022 Aaron Kimball

import argparse
import sys

from .config import SymdbConfig
from .dwarfdefs import FileStatus
from .symdb import SymbolDatabase, SymbolDatabaseError, UnitBuildError, open_elf
from .term import ConsolePrinter, MsgLevel
from .version import SYMDB_VERSION, SYMDB_VERSION_STR, FULL_SYMDB_VERSION_STR

__version__ = SYMDB_VERSION_STR


def _parseArgs(argv):
    parser = argparse.ArgumentParser(description="Query the DWARF debug symbols of an ELF file")
    parser.add_argument("-f", "--file", metavar="elf_file", required=True)
    parser.add_argument("-I", "--search-path", metavar="dir", action="append", dest="search_paths",
                        help="Directory to search for sources of units without a compilation dir")
    parser.add_argument("-a", "--addr", metavar="address", action="append", dest="addrs",
                        type=lambda s: int(s, 0), help="Code address to describe")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("-v", "--version", action="version", version=FULL_SYMDB_VERSION_STR)

    return parser.parse_args(argv)


def _describe_addr(db, addr):
    func = db.get_function_name(addr)
    if func is None:
        return f'0x{addr:x}: no symbol'

    (filename, _status) = db.get_full_source_filename(addr)
    s = f'0x{addr:x}: {func} at {filename}:{db.get_line_number(addr)}'
    text = db.get_line_text(addr)
    if text is not None:
        s += f'\n    {text.strip()}'
    return s


def _describe_units(db):
    lines = []
    for unit in db.iter_units():
        status = FileStatus.name_of(unit.status)
        lines.append(f'[{unit.low_pc:08x}..{unit.high_pc:08x}) {unit.full_filename} ({status})')
    return lines


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    args = _parseArgs(argv)

    console_printer = ConsolePrinter()
    console_printer.start()
    ret = 0
    try:
        config = SymdbConfig(console_printer.print_q)
        if args.verbose:
            # Apply to this run only; don't write it back to the config file.
            overrides = dict(config.get_full_config())
            overrides['symdb.verbose'] = True
            config = SymdbConfig(console_printer.print_q, force_config=overrides)
        db = open_elf(args.file, console_printer.print_q, search_paths=args.search_paths,
                      config=config)

        if args.addrs:
            for addr in args.addrs:
                console_printer.print_q.put((_describe_addr(db, addr), MsgLevel.INFO))
        else:
            for line in _describe_units(db):
                console_printer.print_q.put((line, MsgLevel.INFO))
            console_printer.print_q.put((repr(db), MsgLevel.SUCCESS))
    except SymbolDatabaseError as e:
        console_printer.print_q.put((str(e), MsgLevel.ERR))
        ret = 1
    finally:
        console_printer.shutdown()

    sys.exit(ret)
