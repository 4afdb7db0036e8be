# (c) Copyright 2022 Aaron Kimball

from sortedcontainers import SortedList

from dwarf_symdb.dwarfdefs import FileStatus
from dwarf_symdb.types import TypeTable


class PCRange(object):
    """
    A half-open interval [pc_lo, pc_hi) of $PC values associated with a subprogram.
    """
    def __init__(self, pc_lo, pc_hi, scope=None, order=0):
        self.pc_lo = pc_lo
        self.pc_hi = pc_hi
        self.scope = scope # the SubProgram represented by this PCRange.
        self.order = order # position of the subprogram in DIE order.

    def includes_pc(self, pc):
        return self.pc_lo <= pc < self.pc_hi

    def __repr__(self):
        s = f'[{self.pc_lo:x}..{self.pc_hi:x})'
        if self.scope is not None and self.scope.name:
            s += f': {self.scope.name}'
        return s

    def __lt__(self, other):
        return self.pc_lo < other.pc_lo or (self.pc_lo == other.pc_lo and self.pc_hi < other.pc_hi)

    def __eq__(self, other):
        return self.pc_lo == other.pc_lo and self.pc_hi == other.pc_hi

    def __ne__(self, other):
        return not self.__eq__(other)

    def __gt__(self, other):
        return other.__lt__(self)

    def __le__(self, other):
        return self < other or self == other

    def __ge__(self, other):
        return self > other or self == other


class CompileUnit(object):
    """
        One compilation unit's worth of debug information: attributes of the unit itself, the
        state of its source file, its line table, types, globals and subprograms.
    """

    def __init__(self, offset):
        self.offset = offset  # DIE offset of the unit's top DIE.
        self.tag = None
        self.language = 0
        self.producer = None
        self.low_pc = 0
        self.high_pc = 0

        self.source_filename = None
        self.source_directory = None
        self.full_filename = None
        self.status = FileStatus.OK
        self.statbuf = None

        self.source_text = None   # Full normalized text of the source file.
        self.source_lines = []    # Raw text lines; may be a None-filled placeholder.

        self.used_lines = []          # Line-table rows, in line-program order.
        self.used_line_indices = []   # 0-based index into source_lines for each used line.
        self.used_line_texts = []     # Text for each used line (None if unavailable).

        self.frame_count = 0
        self.types = TypeTable()

        self._variables = []
        self._subprograms = []
        self._pc_ranges = SortedList() # PCRange objects for subprograms with a code range.

    def cu_contains_pc(self, pc):
        """
        Return True if pc falls within [low_pc, high_pc).
        """
        return self.low_pc <= pc < self.high_pc

    def addVariable(self, var):
        self._variables.append(var)

    def getVariables(self):
        return self._variables

    def addSubProgram(self, subprogram):
        order = len(self._subprograms)
        self._subprograms.append(subprogram)
        if subprogram.low_pc < subprogram.high_pc:
            self._pc_ranges.add(PCRange(subprogram.low_pc, subprogram.high_pc, subprogram, order))

    def getSubPrograms(self):
        return self._subprograms

    def subprogram_for_pc(self, pc):
        """
        Return the SubProgram whose [low_pc, high_pc) contains pc, or None.
        Where ranges overlap, the subprogram that came first in DIE order wins.
        """
        found = None
        for pcrange in self._pc_ranges:
            if pcrange.pc_lo > pc:
                break # Sorted list; nothing further can match.
            if pcrange.includes_pc(pc) and (found is None or pcrange.order < found.order):
                found = pcrange

        if found is None:
            return None
        return found.scope

    def subprogram_starting_at(self, pc):
        """
        Return the first SubProgram whose low_pc is exactly pc, or None.
        """
        for subprogram in self._subprograms:
            if subprogram.low_pc == pc:
                return subprogram

        return None

    def used_line_at(self, pc):
        """
        Return the first line-table row whose address is exactly pc, or None.
        """
        for entry in self.used_lines:
            if entry.address == pc:
                return entry

        return None

    def line_text(self, line_num):
        """
        Return the raw text of 1-based line_num, or None if unavailable.
        """
        if line_num is None or line_num < 1 or line_num > len(self.source_lines):
            return None
        return self.source_lines[line_num - 1]

    def __repr__(self):
        return f'<CU 0x{self.offset:x} {self.source_filename} [{self.low_pc:x}..{self.high_pc:x})>'
