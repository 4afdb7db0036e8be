# (c) Copyright 2022 Aaron Kimball

from dwarf_symdb.dwarfdefs import TypeFlags


class Variable(object):
    """
    A global, local, formal parameter or aggregate member.

    A global carries an absolute `addr`; a local or parameter carries a signed frame-relative
    `offset`; a member carries its byte offset within the enclosing aggregate in `offset`.
    `op` is the first byte of the location expression (0 if none).
    """

    def __init__(self, name=None, type_offset=0, op=0, addr=0, offset=0):
        self.name = name
        self.type_offset = type_offset
        self.op = op
        self.addr = addr
        self.offset = offset

        # Filled in by TypeResolver.
        self.type_name = ''
        self.type_flags = 0
        self.byte_size = 0
        self.encoding = 0
        self.members = []

    def is_pointer(self):
        return bool(self.type_flags & TypeFlags.POINTER)

    def is_composite(self):
        return TypeFlags.is_composite(self.type_flags)

    def __repr__(self):
        if self.addr:
            where = f'@0x{self.addr:x}'
        else:
            where = f'@fb{self.offset:+d}'
        return f'{self.type_name.strip()} {self.name} {where}'


class LineEntry(object):
    """
    A line-table row: a code address, its 1-based source line, and the line's text if loaded.
    """

    def __init__(self, address, line, text=None):
        self.address = address
        self.line = line
        self.text = text

    def __repr__(self):
        return f'0x{self.address:x}: line {self.line}'


class SubProgram(object):
    """
    A function: its pc range, declaration line, frame base, local variables and the slice of
    the unit's line table that falls within its range.
    """

    def __init__(self, name=None, low_pc=0, high_pc=0, decl_line=0):
        self.name = name
        self.low_pc = low_pc
        self.high_pc = high_pc
        self.decl_line = decl_line
        self.frame_base = 0   # first op of the frame base expression, or its constant value.
        self.line_text = None # text of decl_line, if source is loaded.
        self.lines = []       # LineEntry objects with low_pc <= address <= high_pc.
        self._variables = []

    def includes_pc(self, pc):
        return self.low_pc <= pc < self.high_pc

    def addVariable(self, var):
        self._variables.append(var)

    def getVariables(self):
        return self._variables

    def getVariable(self, index):
        """
        Return the variable at the 1-based index, or None if out of range.
        """
        if index is None or index < 1 or index > len(self._variables):
            return None
        return self._variables[index - 1]

    def line_entry_for_pc(self, pc):
        """
        Return the LineEntry at exactly `pc`, else the nearest entry preceding it.

        Assumes the entries are in ascending address order: the scan stops at the first entry
        past pc.
        """
        preceding = None
        for entry in self.lines:
            if entry.address == pc:
                return entry
            elif entry.address > pc:
                break
            preceding = entry

        return preceding

    def __repr__(self):
        return f'{self.name} [{self.low_pc:x}..{self.high_pc:x})'
