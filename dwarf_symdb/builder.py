# (c) Copyright 2022 Aaron Kimball
#
# Build a CompileUnit from one unit of debug information.

import os

import dwarf_symdb.dwarfdefs as dwarfdefs
from dwarf_symdb.dwarfdefs import FileStatus
from dwarf_symdb.leb128 import read_sleb128, read_uleb128
from dwarf_symdb.source import die_block, die_form, die_low_high_pc, die_ref, die_signed, \
    die_string, die_unsigned, has_attr
import dwarf_symdb.srcfile as srcfile
from dwarf_symdb.symbol import LineEntry, SubProgram, Variable
from dwarf_symdb.term import MsgLevel, VHEX
from dwarf_symdb.types import StructureMember, TypeEntry, TypeResolver
from dwarf_symdb.unit import CompileUnit

# high_pc values that mean "no real end address" on the top DIE.
_UNBOUNDED_HIGH_PC = (0, 0xFFFFFFFF, 0xFFFFFFFFFFFFFFFF)


class CompileUnitBuilder(object):
    """
    Turns one UnitSource into a CompileUnit.

    Attribute and location decoding is tolerant: anything absent or malformed is left at its
    default value. Only MemoryError escapes build().
    """

    def __init__(self, symdb, unit_source, search_paths=None, exe_mtime=None, sep=os.sep):
        self._symdb = symdb
        self._unit_source = unit_source
        self._search_paths = search_paths or []
        self._exe_mtime = exe_mtime
        self._sep = sep
        self._encoding = symdb.get_conf('symdb.src.encoding')

    def build(self):
        src = self._unit_source
        top_die = src.get_top_DIE()
        cu = CompileUnit(src.cu_offset)
        cu.tag = top_die.tag

        source_lines = []
        if top_die.tag == dwarfdefs.TAG_COMPILE_UNIT:
            self._read_unit_attributes(cu, top_die)
            source_lines = self._load_source_file(cu)

        if cu.status == FileStatus.OK:
            self._read_line_table(cu)

        self._walk_children(cu, top_die)

        self._bind_source_lines(cu, source_lines)
        self._resolve_types(cu)

        self._symdb.verboseprint('Unit ', cu.source_filename, ' @ ', VHEX, cu.offset,
                                 ': ', len(cu.getSubPrograms()), ' subprograms, ',
                                 len(cu.getVariables()), ' globals, ', len(cu.types), ' types')
        return cu

    def _read_unit_attributes(self, cu, top_die):
        cu.source_filename = die_string(top_die, 'DW_AT_name')
        cu.source_directory = die_string(top_die, 'DW_AT_comp_dir')
        cu.producer = die_string(top_die, 'DW_AT_producer')
        cu.language = die_unsigned(top_die, 'DW_AT_language')
        (cu.low_pc, cu.high_pc) = die_low_high_pc(top_die)

    def _load_source_file(self, cu):
        """
        Resolve, stat and read the unit's source file.

        @return the list of text lines, empty unless the file was read.
        """
        (cu.source_directory, cu.source_filename, cu.full_filename) = \
            srcfile.resolve_source_path(cu.source_filename, cu.source_directory,
                                        self._search_paths, self._sep)

        (cu.status, cu.statbuf) = srcfile.check_source_file(cu.full_filename, self._exe_mtime)
        if cu.status != FileStatus.OK:
            self._symdb.verboseprint('Source file ', cu.full_filename, ': ',
                                     FileStatus.name_of(cu.status))
            return []

        loaded = srcfile.load_source_text(cu.full_filename, self._encoding)
        if loaded is None:
            cu.status = FileStatus.NO_FILE
            self._symdb.verboseprint('Could not open source file ', cu.full_filename)
            return []

        (cu.source_text, lines) = loaded
        return lines

    def _read_line_table(self, cu):
        try:
            for (address, line) in self._unit_source.iter_line_rows():
                cu.used_lines.append(LineEntry(address, line))
        except MemoryError:
            raise
        except Exception as e:
            # Keep whatever rows were decoded before the line program went bad.
            self._symdb.msg_q(MsgLevel.WARN, f'Error reading line table for {cu.source_filename}: ',
                              str(e))

    def _walk_children(self, cu, top_die):
        """
        Dispatch every direct child of the unit's top DIE. A DIE tree that can't be read to the
        end leaves the unit with whatever children came before the failure.
        """
        try:
            for die in top_die.iter_children():
                self._add_die(cu, die)
        except MemoryError:
            raise
        except Exception as e:
            self._symdb.msg_q(MsgLevel.WARN, f'Error reading DIE tree of {cu.source_filename} ',
                              f'at offset 0x{cu.offset:x}: ', str(e))

    def _add_die(self, cu, die):
        """
        Dispatch one direct child of the unit's top DIE by tag.
        """
        tag = die.tag
        try:
            if tag == dwarfdefs.TAG_VARIABLE:
                self._add_global_variable(cu, die)
            elif tag in dwarfdefs.TYPE_TAGS:
                self._add_type(cu, die)
            elif tag == dwarfdefs.TAG_SUBPROGRAM:
                self._add_subprogram(cu, die)
            else:
                # Namespaces, imported declarations, lexical blocks at unit scope, etc.
                pass
        except MemoryError:
            raise
        except Exception as e:
            self._symdb.msg_q(MsgLevel.WARN, f'Skipping malformed {tag} at offset ',
                              f'0x{die.offset:x}: ', str(e))

    def _read_variable(self, cu, die):
        """
        Decode name and type reference of a variable / formal parameter DIE.
        @return (Variable, location block or None)
        """
        var = Variable(die_string(die, 'DW_AT_name'), die_ref(die, 'DW_AT_type', cu.offset))

        block = die_block(die, 'DW_AT_location')
        if block:
            var.op = block[0]
        return (var, block)

    def _add_global_variable(self, cu, die):
        (var, block) = self._read_variable(cu, die)
        if block and block[0] == dwarfdefs.DW_OP_addr and len(block) in (5, 9):
            var.addr = int.from_bytes(block[1:], self._unit_source.byte_order)

        if not var.name or not var.addr:
            # Declarations, TLS and optimized-out globals have no fixed address.
            self._symdb.verboseprint('Dropping global ', var.name, ' without a static address')
            return

        cu.addVariable(var)

    def _read_local_variable(self, cu, die):
        (var, block) = self._read_variable(cu, die)
        if block and 2 <= len(block) <= 5:
            if die.tag == dwarfdefs.TAG_VARIABLE:
                var.offset = read_sleb128(block[1:])
            else:
                var.offset = read_uleb128(block[1:])

        return var

    def _add_type(self, cu, die):
        entry = TypeEntry(die.tag, die.offset,
                          type_offset=die_ref(die, 'DW_AT_type', cu.offset),
                          byte_size=die_unsigned(die, 'DW_AT_byte_size'),
                          encoding=die_unsigned(die, 'DW_AT_encoding'),
                          name=die_string(die, 'DW_AT_name'))

        if die.tag == dwarfdefs.TAG_STRUCTURE_TYPE or die.tag == dwarfdefs.TAG_UNION_TYPE:
            for child in die.iter_children():
                if child.tag == dwarfdefs.TAG_MEMBER:
                    entry.addMember(self._read_member(cu, child))

        cu.types.add(entry)

    def _read_member(self, cu, die):
        name = die_string(die, 'DW_AT_name')
        type_offset = die_ref(die, 'DW_AT_type', cu.offset)

        location = 0
        form = die_form(die, 'DW_AT_data_member_location')
        if form in dwarfdefs.UNSIGNED_FORMS:
            location = die_unsigned(die, 'DW_AT_data_member_location')
        elif form in dwarfdefs.SIGNED_FORMS:
            location = die_signed(die, 'DW_AT_data_member_location')
        else:
            # DWARF 2 style: DW_OP_plus_uconst <uleb128>
            block = die_block(die, 'DW_AT_data_member_location')
            if block and 2 <= len(block) <= 4:
                location = read_uleb128(block[1:])

        return StructureMember(name, type_offset, location)

    def _add_subprogram(self, cu, die):
        (low_pc, high_pc) = die_low_high_pc(die)
        subprogram = SubProgram(die_string(die, 'DW_AT_name'), low_pc, high_pc,
                                die_unsigned(die, 'DW_AT_decl_line'))

        if has_attr(die, 'DW_AT_frame_base'):
            cu.frame_count += 1
            block = die_block(die, 'DW_AT_frame_base')
            if block:
                subprogram.frame_base = block[0]
            else:
                subprogram.frame_base = die_unsigned(die, 'DW_AT_frame_base')

        for child in die.iter_children():
            if child.tag == dwarfdefs.TAG_FORMAL_PARAMETER or child.tag == dwarfdefs.TAG_VARIABLE:
                subprogram.addVariable(self._read_local_variable(cu, child))

        # Closed interval: the row at high_pc belongs to this subprogram too.
        for entry in cu.used_lines:
            if low_pc <= entry.address <= high_pc:
                subprogram.lines.append(entry)

        cu.addSubProgram(subprogram)

    def _bind_source_lines(self, cu, source_lines):
        """
        Attach source text to subprograms and line entries, and fill in the unit's used-line
        arrays. Without loaded text, a None-filled line array is sized from the last
        subprogram's last line entry.
        """
        subprograms = cu.getSubPrograms()
        if source_lines:
            cu.source_lines = source_lines
            for subprogram in subprograms:
                subprogram.line_text = cu.line_text(subprogram.decl_line)
                for entry in subprogram.lines:
                    entry.text = cu.line_text(entry.line)
        elif subprograms and subprograms[-1].lines:
            cu.source_lines = [None] * subprograms[-1].lines[-1].line

        if not cu.used_lines or not cu.source_lines:
            return

        for entry in cu.used_lines:
            entry.text = cu.line_text(entry.line)
            cu.used_line_indices.append(entry.line - 1)
            cu.used_line_texts.append(entry.text)

        if not cu.low_pc and cu.high_pc in _UNBOUNDED_HIGH_PC:
            # No usable range on the unit itself; take it from the line table.
            cu.low_pc = cu.used_lines[0].address
            cu.high_pc = cu.used_lines[-1].address

    def _resolve_types(self, cu):
        resolver = TypeResolver(cu.types, self._symdb,
                                max_steps=self._symdb.get_conf('symdb.resolve.max_steps'),
                                max_depth=self._symdb.get_conf('symdb.resolve.max_depth'))

        for var in cu.getVariables():
            resolver.resolve(var)
        for subprogram in cu.getSubPrograms():
            for var in subprogram.getVariables():
                resolver.resolve(var)
