#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import os
import unittest

import dwarf_symdb
from dwarf_symdb.elf_source import ElfUnitSource
from dwarf_symdb.symdb import SymbolDatabaseError, open_elf
from symdb_testcase import *


class _Row(object):
    def __init__(self, address, line, end_sequence=False):
        self.address = address
        self.line = line
        self.end_sequence = end_sequence


class _Entry(object):
    def __init__(self, state):
        self.state = state


class _LineProgram(object):
    def __init__(self, entries):
        self._entries = entries

    def get_entries(self):
        return self._entries


class _DwarfInfo(object):
    def __init__(self, line_program):
        self._line_program = line_program

    def line_program_for_CU(self, cu):
        return self._line_program


class _CU(object):
    cu_offset = 0x20


class TestElfSource(SymdbTestCase):

    def test_line_rows_skip_non_rows(self):
        program = _LineProgram([
            _Entry(None),
            _Entry(_Row(0x100, 3)),
            _Entry(_Row(0x104, 4)),
            _Entry(_Row(0x108, 4, end_sequence=True)),
        ])
        unit = ElfUnitSource(_DwarfInfo(program), _CU(), 'little')
        self.assertEqual(unit.cu_offset, 0x20)
        self.assertEqual(unit.byte_order, 'little')
        self.assertEqual(list(unit.iter_line_rows()), [(0x100, 3), (0x104, 4)])

        empty = ElfUnitSource(_DwarfInfo(None), _CU(), 'big')
        self.assertEqual(list(empty.iter_line_rows()), [])

    def test_missing_file(self):
        with self.assertRaises(SymbolDatabaseError):
            open_elf(os.path.join(self.tmpdir, 'missing.elf'), self.console_printer.print_q,
                     config=self.make_config())

    def test_not_an_elf_file(self):
        path = self.write_source('garbage.elf', 'this is not an ELF file\n' * 8)
        with self.assertRaises(SymbolDatabaseError):
            open_elf(path, self.console_printer.print_q, config=self.make_config())

    def test_cli_reports_failure(self):
        with self.assertRaises(SystemExit) as ctx:
            dwarf_symdb.main(['-f', os.path.join(self.tmpdir, 'missing.elf')])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
