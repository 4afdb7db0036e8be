# (c) Copyright 2022 Aaron Kimball
#
# Per-unit type table and the resolver that walks type references to give each variable a
# human-readable type name, size, encoding, flags and (for aggregates) member list.

import dwarf_symdb.dwarfdefs as dwarfdefs
from dwarf_symdb.dwarfdefs import TypeFlags
from dwarf_symdb.term import MsgLevel
from dwarf_symdb.symbol import Variable


class StructureMember(object):
    """
    A data member of a struct or union type entry.
    """
    def __init__(self, name, type_offset, location=0):
        self.name = name
        self.type_offset = type_offset
        self.location = location # byte offset within the enclosing aggregate.

    def __repr__(self):
        return f'{self.name}@+{self.location} -> <0x{self.type_offset:x}>'


class TypeEntry(object):
    """
    One type-describing DIE: its tag, its own DIE offset, and the offset of the type it
    refers to (0 if none).
    """
    def __init__(self, tag, offset, type_offset=0, byte_size=0, encoding=0, name=None):
        self.tag = tag
        self.offset = offset
        self.type_offset = type_offset
        self.byte_size = byte_size
        self.encoding = encoding
        self.name = name
        self.members = []

    def addMember(self, member):
        self.members.append(member)

    def getMembers(self):
        return self.members

    def __repr__(self):
        s = f'<0x{self.offset:x}> {self.tag}'
        if self.name:
            s += f' {self.name}'
        if self.type_offset:
            s += f' -> <0x{self.type_offset:x}>'
        return s


class TypeTable(object):
    """
    The type entries of one compilation unit, in discovery order and indexed by DIE offset.
    """
    def __init__(self):
        self._entries = []
        self._by_offset = {} # DIE offset -> TypeEntry

    def add(self, entry):
        self._entries.append(entry)
        # First definition at an offset wins.
        self._by_offset.setdefault(entry.offset, entry)

    def get(self, offset):
        return self._by_offset.get(offset)

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)


class TypeResolver(object):
    """
    Follow type references for variables within a single compilation unit.

    Each variable's walk is bounded by max_steps type entries, so malformed or cyclic
    references terminate. Aggregate members are expanded into child Variables up to
    max_depth levels deep.
    """

    def __init__(self, type_table, symdb, max_steps=64, max_depth=8):
        self._types = type_table
        self._symdb = symdb
        self._max_steps = max_steps
        self._max_depth = max_depth

    def resolve(self, var, depth=0):
        """
        Fill in var.type_name, byte_size, encoding, type_flags and members.

        @param var the Variable to resolve.
        @param depth member nesting depth of var; 0 for a top-level variable.
        @return the number of type entries visited.
        """
        var.type_name = ''
        var.type_flags = 0
        var.members = []

        in_typedef = False
        steps = 0
        offset = var.type_offset
        while offset:
            entry = self._types.get(offset)
            if entry is None:
                # Refers outside this unit or to something we don't track.
                break

            if steps >= self._max_steps:
                self._symdb.msg_q(MsgLevel.WARN,
                                  f'Type of {var.name} at <0x{var.type_offset:x}> does not ',
                                  f'terminate after {self._max_steps} steps; truncating to ',
                                  repr(var.type_name))
                break
            steps += 1

            offset = 0
            tag = entry.tag
            if tag == dwarfdefs.TAG_SUBROUTINE_TYPE:
                var.type_flags |= TypeFlags.SUBROUTINE
                var.type_name += ' (* ) ()'
            elif tag == dwarfdefs.TAG_STRUCTURE_TYPE or tag == dwarfdefs.TAG_UNION_TYPE:
                if tag == dwarfdefs.TAG_STRUCTURE_TYPE:
                    var.type_flags |= TypeFlags.STRUCTURE
                else:
                    var.type_flags |= TypeFlags.UNION
                if not in_typedef and entry.name:
                    var.type_name += entry.name

                if entry.type_offset:
                    offset = entry.type_offset
                else:
                    if var.type_flags & TypeFlags.POINTER:
                        var.type_name += '* '
                    if var.op:
                        self._expand_members(var, entry, depth)
            elif tag == dwarfdefs.TAG_POINTER_TYPE:
                var.type_flags |= TypeFlags.POINTER
                var.byte_size = entry.byte_size
                var.encoding = dwarfdefs.POINTER_ENCODING
                if entry.type_offset:
                    offset = entry.type_offset
                else:
                    var.type_name += 'void* '
            elif tag == dwarfdefs.TAG_ENUMERATION_TYPE:
                var.type_flags |= TypeFlags.ENUM
                var.byte_size = entry.byte_size
                if entry.encoding:
                    var.encoding = entry.encoding
                elif entry.byte_size == 4:
                    # 4-byte enums without an explicit encoding hold signed ints.
                    var.encoding = dwarfdefs.DW_ATE_signed
            elif tag == dwarfdefs.TAG_TYPEDEF:
                if not in_typedef:
                    in_typedef = True
                    var.type_flags |= TypeFlags.TYPEDEF
                    if entry.name:
                        var.type_name += entry.name
                offset = entry.type_offset
            elif tag == dwarfdefs.TAG_SUBRANGE_TYPE:
                var.type_flags |= TypeFlags.SUBRANGE
            elif tag == dwarfdefs.TAG_ARRAY_TYPE:
                var.type_flags |= TypeFlags.ARRAY
                offset = entry.type_offset
            elif tag == dwarfdefs.TAG_CONST_TYPE:
                var.type_flags |= TypeFlags.CONST
                var.type_name += 'const '
                offset = entry.type_offset
            elif tag == dwarfdefs.TAG_BASE_TYPE:
                if not in_typedef and entry.name:
                    var.type_name += entry.name
                if var.type_flags & TypeFlags.POINTER:
                    var.type_name += '* '
                else:
                    var.byte_size = entry.byte_size
                    var.encoding = entry.encoding
                if var.type_flags & TypeFlags.ARRAY:
                    var.type_name += '[]'

        return steps

    def _expand_members(self, var, entry, depth):
        """
        Attach one child Variable per member of the aggregate 'entry' to var.
        """
        if depth >= self._max_depth:
            self._symdb.verboseprint('Not expanding members of ', var.name, ' past depth ', depth)
            return
        if depth > 0 and var.type_flags & TypeFlags.POINTER:
            # A member that points to an aggregate: leave it collapsed.
            return

        for member in entry.getMembers():
            child = Variable(member.name, member.type_offset, op=var.op, offset=member.location)
            self.resolve(child, depth + 1)
            var.members.append(child)
