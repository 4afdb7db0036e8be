#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import unittest

from dwarf_symdb.dwarfdefs import FileStatus
from dwarf_symdb.symdb import SymbolDatabaseError, UnitBuildError
from dwarf_symdb.term import CapturePrinter, MsgLevel
from mock.mock_dwarf import *
from symdb_testcase import *


def _snapshot(db):
    """
    Structural summary of everything a database extracted, for comparing two builds.
    """
    def _var(v):
        return (v.name, v.addr, v.offset, v.op, v.type_name, v.type_flags, v.byte_size,
                v.encoding, tuple(_var(m) for m in v.members))

    units = []
    for unit in db.iter_units():
        units.append((
            unit.offset, unit.source_filename, unit.full_filename, unit.status,
            unit.low_pc, unit.high_pc, unit.frame_count, tuple(unit.source_lines),
            tuple((e.address, e.line, e.text) for e in unit.used_lines),
            tuple(unit.used_line_indices), tuple(unit.used_line_texts),
            tuple(_var(v) for v in unit.getVariables()),
            tuple((sp.name, sp.low_pc, sp.high_pc, sp.decl_line, sp.line_text,
                   tuple((e.address, e.line) for e in sp.lines),
                   tuple(_var(v) for v in sp.getVariables()))
                  for sp in unit.getSubPrograms()),
        ))
    return units


class TestIngestion(SymdbTestCase):

    def test_build_is_repeatable(self):
        self.write_source()
        first = self.make_db([sample_unit(self.tmpdir)])
        second = self.make_db([sample_unit(self.tmpdir)])
        self.assertEqual(_snapshot(first), _snapshot(second))

    def test_subprograms_lie_within_their_unit(self):
        self.write_source()
        db = self.make_db([
            sample_unit(self.tmpdir, cu_offset=0, base_addr=0x1000),
            sample_unit(self.tmpdir, cu_offset=0x1000, base_addr=0x3000),
        ])
        for unit in db.iter_units():
            for subprogram in unit.getSubPrograms():
                self.assertIs(db.unit_for_addr(subprogram.low_pc), unit)
                self.assertIs(db.subprogram_for_addr(subprogram.low_pc), subprogram)
                self.assertIs(db.unit_for_addr(subprogram.high_pc - 1), unit)

    def test_empty_source(self):
        db = self.make_db([])
        self.assertEqual(db.num_units(), 0)
        self.assertEqual(db.get_num_variables(), 0)
        self.assertIsNone(db.unit_for_addr(0x1000))
        self.assertEqual(db.get_line_number(0x1000), 0)

    def test_globals_continue_across_units(self):
        self.write_source()
        db = self.make_db([
            sample_unit(self.tmpdir, cu_offset=0, base_addr=0x1000),
            sample_unit(self.tmpdir, cu_offset=0x1000, base_addr=0x3000, prefix='u2_'),
        ])
        self.assertEqual(db.num_units(), 2)
        self.assertEqual(db.get_num_variables(None), 4)
        self.assertEqual([db.get_variable(None, i).name for i in range(1, 5)],
                         ['g_counter', 'g_origin', 'u2_g_counter', 'u2_g_origin'])
        # References in the second unit resolve against its own offset.
        self.assertEqual(db.get_variable(None, 3).type_name, 'counter_t')

        self.assertEqual(db.get_function_name(0x3010), 'main')
        self.assertIs(db.unit_for_addr(0x3010), db.get_unit(1))
        self.assertEqual(db.get_line_number(0x3015), 12)

    def test_first_global_name_wins(self):
        self.write_source()
        db = self.make_db([
            sample_unit(self.tmpdir, cu_offset=0, base_addr=0x1000),
            sample_unit(self.tmpdir, cu_offset=0x1000, base_addr=0x3000),
        ])
        self.assertEqual(db.get_num_variables(None), 4)
        self.assertIs(db.get_global_variable('g_counter'), db.get_variable(None, 1))

    def test_first_containing_unit_wins(self):
        self.write_source()
        db = self.make_db([
            sample_unit(self.tmpdir, cu_offset=0, base_addr=0x1000, filename='main.c'),
            sample_unit(self.tmpdir, cu_offset=0x1000, base_addr=0x1080, filename='other.c'),
        ])
        self.assertEqual(db.get_source_filename(0x1090), 'main.c')

    def test_unit_range_from_line_table(self):
        self.write_source()
        sample = sample_unit(self.tmpdir)
        top = sample.get_top_DIE()
        top.attributes['DW_AT_low_pc'] = addr(0)
        top.attributes['DW_AT_high_pc'] = addr(0xFFFFFFFF)
        db = self.make_db([sample])

        unit = db.get_unit(0)
        self.assertEqual((unit.low_pc, unit.high_pc), (0x1000, 0x10a0))
        self.assertEqual(db.get_function_name(0x1010), 'main')

    def test_unit_range_kept_when_high_pc_is_real(self):
        self.write_source()
        sample = sample_unit(self.tmpdir)
        top = sample.get_top_DIE()
        del top.attributes['DW_AT_low_pc']
        top.attributes['DW_AT_high_pc'] = addr(0x2000)
        db = self.make_db([sample])
        self.assertEqual(db.get_unit(0).low_pc, 0)
        self.assertEqual(db.get_function_name(0x1010), 'main')
        self.assertIsNone(db.unit_for_addr(0x2000))

    def test_partial_unit_tag(self):
        top = FakeDIE('DW_TAG_partial_unit', 0xb, {'DW_AT_name': name('part.c')}, [
            type_die('DW_TAG_base_type', INT_T, name=name('int'), byte_size=data(4)),
        ])
        db = self.make_db([FakeUnit(top, [(0x1000, 1)])])
        unit = db.get_unit(0)
        self.assertEqual(unit.tag, 'DW_TAG_partial_unit')
        self.assertIsNone(unit.source_filename)
        self.assertEqual(unit.status, FileStatus.OK)
        self.assertEqual(len(unit.types), 1)
        self.assertEqual(len(unit.used_lines), 1)

    def test_broken_line_table_keeps_rows(self):
        self.write_source()
        printer = CapturePrinter()
        printer.start()
        try:
            sample = sample_unit(self.tmpdir)
            unit = BrokenLineTableUnit(sample.get_top_DIE(), [(0x1000, 10), (0x1010, 12)])
            db = self.make_db([unit], print_q=printer.print_q)
            printer.join_q()
        finally:
            printer.shutdown()

        self.assertEqual(len(db.get_unit(0).used_lines), 2)
        self.assertEqual(db.get_line_number(0x1015), 12)
        self.assertEqual(len(printer.messages_at(MsgLevel.WARN)), 1)

    def test_truncated_die_tree_keeps_unit(self):
        self.write_source()
        good = sample_unit(self.tmpdir, cu_offset=0, base_addr=0x1000)
        sample = sample_unit(self.tmpdir, cu_offset=0x1000, base_addr=0x3000)
        top = sample.get_top_DIE()
        truncated = TruncatedDIE(top.tag, top.offset, top.attributes, top.children)
        unit = FakeUnit(truncated, sample._line_rows, cu_offset=0x1000)

        printer = CapturePrinter()
        printer.start()
        try:
            db = self.make_db([good, unit], print_q=printer.print_q)
            printer.join_q()
        finally:
            printer.shutdown()

        self.assertEqual(db.num_units(), 2)
        self.assertEqual(len(db.get_unit(0).getSubPrograms()), 2)
        self.assertEqual(db.get_num_variables(None), 2)

        partial = db.get_unit(1)
        self.assertEqual(len(partial.types), 1)
        self.assertEqual(len(partial.getSubPrograms()), 0)
        self.assertEqual(db.get_line_number(0x3010), 12)

        warnings = printer.messages_at(MsgLevel.WARN)
        self.assertEqual(len(warnings), 1)
        self.assertIn('truncated .debug_info', warnings[0])

    def test_malformed_die_is_skipped(self):
        self.write_source()
        sample = sample_unit(self.tmpdir)
        top = sample.get_top_DIE()
        bad = FakeDIE('DW_TAG_structure_type', 0x200, {'DW_AT_name': name('bad')})
        bad.iter_children = None  # Calling it fails.
        top.children.insert(0, bad)

        db = self.make_db([sample])
        self.assertEqual(len(db.get_unit(0).types), 12)
        self.assertEqual(db.get_num_variables(None), 2)

    def test_out_of_memory_names_unit(self):
        class ExhaustedUnit(FakeUnit):
            def get_top_DIE(self):
                raise MemoryError()

        with self.assertRaises(UnitBuildError) as ctx:
            self.make_db([ExhaustedUnit(None, cu_offset=0x40)])
        self.assertEqual(ctx.exception.cu_offset, 0x40)
        self.assertIn('0x40', str(ctx.exception))
        self.assertIsInstance(ctx.exception, SymbolDatabaseError)
        self.assertIsInstance(ctx.exception.__cause__, MemoryError)

    def test_missing_sources_summarized(self):
        printer = CapturePrinter()
        printer.start()
        try:
            self.make_db([sample_unit(self.tmpdir)], print_q=printer.print_q)
            printer.join_q()
        finally:
            printer.shutdown()

        warnings = printer.messages_at(MsgLevel.WARN)
        self.assertEqual(len(warnings), 1)
        self.assertIn('1 of 1', warnings[0])

    def test_verbose_ingest_logs(self):
        self.write_source()
        printer = CapturePrinter()
        printer.start()
        try:
            config = self.make_config(printer.print_q, {'symdb.verbose': True})
            self.make_db([sample_unit(self.tmpdir)], print_q=printer.print_q, config=config)
            printer.join_q()
        finally:
            printer.shutdown()

        debug = printer.messages_at(MsgLevel.DEBUG)
        self.assertTrue(any('Dropping global g_ready' in msg for msg in debug))
        self.assertTrue(any(msg.startswith('Unit main.c @ 0:') for msg in debug))


if __name__ == "__main__":
    unittest.main(verbosity=2)
