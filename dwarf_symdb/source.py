# (c) Copyright 2022 Aaron Kimball
#
# The Debug-Info Source seam: what the builders need from a DWARF reader, and tolerant
# accessors for DIE attributes.
#
# A DIE is anything with `tag`, `offset`, `attributes` (name -> object with `form` and
# `value`) and `iter_children()`. pyelftools DIEs satisfy this directly; see elf_source.py.

import dwarf_symdb.dwarfdefs as dwarfdefs


class DebugInfoSource(object):
    """
    A reader over the compilation units of one executable's debug info.
    """

    # Modification time of the executable, or None if unknown. Used to flag source files
    # newer than the program they were compiled into.
    exe_mtime = None

    def iter_units(self):
        """ Yield a UnitSource for each compilation unit, in .debug_info order. """
        raise NotImplementedError()

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


class UnitSource(object):
    """
    One compilation unit as exposed by a DebugInfoSource.
    """

    cu_offset = 0       # Global offset of the unit; unit-relative DIE refs are added to it.
    byte_order = 'big'  # Byte order of DW_OP_addr operands in location blocks.

    def get_top_DIE(self):
        raise NotImplementedError()

    def iter_line_rows(self):
        """ Yield (address, line) pairs in line-number-program order. """
        raise NotImplementedError()


def die_attr(die, name, default_value=None):
    """
    Return the raw value of attribute 'name' (e.g. 'DW_AT_name') or default_value if the DIE
    does not carry it.
    """
    try:
        return die.attributes[name].value
    except (KeyError, AttributeError):
        return default_value


def die_form(die, name):
    try:
        return die.attributes[name].form
    except (KeyError, AttributeError):
        return None


def has_attr(die, name):
    try:
        die.attributes[name]
        return True
    except (KeyError, AttributeError):
        return False


def die_string(die, name, default_value=None):
    """
    Return a string-valued attribute, decoding bytes as utf-8. Non-string values yield
    default_value.
    """
    val = die_attr(die, name)
    if isinstance(val, bytes):
        return val.decode('utf-8', errors='replace')
    elif isinstance(val, str):
        return val
    return default_value


def die_unsigned(die, name, default_value=0):
    """
    Return an integer attribute as an unsigned value. Blocks, strings, references and
    anything else that is not a plain int yield default_value.
    """
    form = die_form(die, name)
    val = die_attr(die, name)
    if form in dwarfdefs.BLOCK_FORMS or not isinstance(val, int) or isinstance(val, bool):
        return default_value
    if val < 0:
        return default_value
    return val


def die_signed(die, name, default_value=0):
    val = die_attr(die, name)
    if not isinstance(val, int) or isinstance(val, bool):
        return default_value
    return val


def die_block(die, name):
    """
    Return a block / exprloc attribute as a bytes object, or None if the attribute is absent
    or has a non-block form.
    """
    val = die_attr(die, name)
    if val is None:
        return None
    form = die_form(die, name)
    if form is not None and form not in dwarfdefs.BLOCK_FORMS:
        return None
    if isinstance(val, (bytes, bytearray)):
        return bytes(val)
    if isinstance(val, (list, tuple)):
        try:
            return bytes(val)
        except (TypeError, ValueError):
            return None
    return None


def die_ref(die, name, cu_offset):
    """
    Resolve a reference attribute to a global DIE offset. Unit-relative forms are rebased
    on cu_offset. Returns 0 when absent or not a reference.
    """
    val = die_attr(die, name)
    if not isinstance(val, int) or isinstance(val, bool):
        return 0
    form = die_form(die, name)
    if form in dwarfdefs.GLOBAL_REF_FORMS:
        return val
    elif form in dwarfdefs.LOCAL_REF_FORMS:
        return val + cu_offset
    return 0


def die_low_high_pc(die):
    """
    Return (low_pc, high_pc) for a DIE. A DW_AT_high_pc in a constant class form is an offset
    from low_pc (DWARF 4+). Missing values are 0.
    """
    low_pc = die_unsigned(die, 'DW_AT_low_pc', 0)
    high_pc = die_unsigned(die, 'DW_AT_high_pc', 0)
    if high_pc and die_form(die, 'DW_AT_high_pc') in dwarfdefs.UNSIGNED_FORMS:
        high_pc += low_pc
    return (low_pc, high_pc)
