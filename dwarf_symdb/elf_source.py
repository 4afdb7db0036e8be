# (c) Copyright 2022 Aaron Kimball
#
# Debug-Info Source backed by pyelftools, reading .debug_info / .debug_line from an ELF file.

from elftools.common.exceptions import ELFError, DWARFError
from elftools.elf.elffile import ELFFile

import os

from dwarf_symdb.source import DebugInfoSource, UnitSource


class ElfUnitSource(UnitSource):
    """
    A pyelftools CompileUnit wrapped as a UnitSource.
    """

    def __init__(self, dwarf_info, cu, byte_order):
        self._dwarf_info = dwarf_info
        self._cu = cu
        self.cu_offset = cu.cu_offset
        self.byte_order = byte_order

    def get_top_DIE(self):
        return self._cu.get_top_DIE()

    def iter_line_rows(self):
        line_program = self._dwarf_info.line_program_for_CU(self._cu)
        if line_program is None:
            return

        for entry in line_program.get_entries():
            state = entry.state
            if state is None or state.end_sequence:
                # Opcodes that don't emit a row, and the end-of-sequence marker.
                continue
            yield (state.address, state.line)

    def __repr__(self):
        return f'Compilation unit (@offset {self.cu_offset:x})'


class ElfDebugInfoSource(DebugInfoSource):
    """
    Opens an ELF executable and exposes its DWARF compilation units.

    Usage:
        with ElfDebugInfoSource('prog.elf') as source:
            db = SymbolDatabase(source, print_q)
    """

    def __init__(self, elf_name):
        self.elf_name = os.path.realpath(elf_name)
        self.exe_mtime = os.stat(self.elf_name).st_mtime

        self._elf_file_handle = open(self.elf_name, 'rb')
        try:
            self.elf = ELFFile(self._elf_file_handle)
            self._byte_order = 'little' if self.elf.little_endian else 'big'
            self._dwarf_info = None
            if self.elf.has_dwarf_info():
                self._dwarf_info = self.elf.get_dwarf_info()
                if not self._dwarf_info.has_debug_info:
                    # Just an exception handler unwind table; no .debug_info to read.
                    self._dwarf_info = None
        except (ELFError, DWARFError):
            self.close()
            raise

    @property
    def has_debug_info(self):
        return self._dwarf_info is not None

    def iter_units(self):
        if self._dwarf_info is None:
            return
        for cu in self._dwarf_info.iter_CUs():
            yield ElfUnitSource(self._dwarf_info, cu, self._byte_order)

    def close(self):
        if self._elf_file_handle:
            self._elf_file_handle.close()
        self._elf_file_handle = None

    def __repr__(self):
        return f'ElfDebugInfoSource({self.elf_name})'
