# (c) Copyright 2022 Aaron Kimball
#
# The symbol database: ingest every compilation unit once, then answer address -> source,
# address -> function, and variable queries.

import os
import time

from sortedcontainers import SortedDict

from dwarf_symdb.builder import CompileUnitBuilder
from dwarf_symdb.config import SymdbConfig
import dwarf_symdb.dwarfdefs as dwarfdefs
import dwarf_symdb.term as term
from dwarf_symdb.term import MsgLevel


class SymbolDatabaseError(Exception):
    """ Raised when a symbol database can't be created. """
    pass


class UnitBuildError(SymbolDatabaseError):
    """ Raised when a compilation unit can't be built (resource exhaustion). """
    def __init__(self, cu_offset, msg):
        super().__init__(msg)
        self.cu_offset = cu_offset


class SymbolDatabase(object):
    """
    Immutable-after-build index of the debug information in one executable.

    Queries never raise for unknown addresses, names or indices; they return None
    (or 0 / an empty list where noted).
    """

    def __init__(self, source, print_q, search_paths=None, exe_mtime=None, config=None):
        """
        Ingest all compilation units of 'source'.

        @param source a DebugInfoSource.
        @param print_q the queue receiving (message, MsgLevel) tuples.
        @param search_paths directories probed for units lacking a compilation directory.
            Overrides the 'symdb.search.paths' setting when given.
        @param exe_mtime modification time of the executable; defaults to source.exe_mtime.
        @param config a SymdbConfig; if None, the user config file is loaded.
        """
        self._print_q = print_q
        self.verboseprint = term.silent  # verboseprint() is either silent() or _verbose_print_all()

        if config is None:
            config = SymdbConfig(print_q)
        self._config = config
        self._config.set_change_hook(self._on_conf_change)
        self._config_verbose_print()

        if search_paths is None:
            search_paths = self.get_conf('symdb.search.paths') or []
        self._search_paths = list(search_paths)

        if exe_mtime is None:
            exe_mtime = source.exe_mtime
        self._exe_mtime = exe_mtime

        self._units = []
        self._globals = []                    # All globals of all units, in unit order.
        self._global_names = SortedDict()     # name -> first Variable with that name.

        self._ingest(source)

    def msg_q(self, color, *args):
        """
        Enqueue a msg for printing to the console. Adds the stringified message and color/priority
        level to the print queue.

        @param color either a term color string (term.COLOR_BOLD) or MsgLevel enum
        @param args a set of arguments to stringify and concatenate.
        """
        def _str_fn(x):
            if isinstance(x, str):
                return x
            else:
                return repr(x)

        msg_str = "".join(list(map(_str_fn, args)))
        self._print_q.put((msg_str, color))

    def _make_verbose_print_fn(self):
        """
        Return a 'verboseprint()' method that curries the self._print_q field.
        """
        def _verbose_print_all(*args):
            self.msg_q(MsgLevel.DEBUG, term.format_verbose(*args))

        return _verbose_print_all

    def _config_verbose_print(self):
        term.set_use_colors(self._config.get_conf('symdb.colors'))
        if self._config.get_conf('symdb.verbose'):
            self.verboseprint = self._make_verbose_print_fn()
        else:
            self.verboseprint = term.silent

    def _on_conf_change(self, key, val):
        if key == 'symdb.verbose' or key == 'symdb.colors':
            self._config_verbose_print()

    def get_conf(self, key):
        return self._config.get_conf(key)

    def set_conf(self, key, val):
        """
        Change a setting. Settings that shape ingestion only affect databases built afterward.
        """
        self._config.set_conf(key, val)

    def get_config(self):
        return self._config

    def _ingest(self, source):
        start = time.time()
        for unit_source in source.iter_units():
            builder = CompileUnitBuilder(self, unit_source, self._search_paths, self._exe_mtime)
            try:
                unit = builder.build()
            except MemoryError as e:
                offset = unit_source.cu_offset
                raise UnitBuildError(offset, f'Out of memory building unit at offset 0x{offset:x}') \
                    from e
            self._units.append(unit)

        for unit in self._units:
            for var in unit.getVariables():
                self._globals.append(var)
                if var.name not in self._global_names:
                    self._global_names[var.name] = var

        missing = [unit for unit in self._units if unit.tag == dwarfdefs.TAG_COMPILE_UNIT
                   and unit.status != dwarfdefs.FileStatus.OK]
        if missing:
            self.msg_q(MsgLevel.WARN, f'{len(missing)} of {len(self._units)} compilation units ',
                       'have no usable source file')

        self.verboseprint(f'Loaded {len(self._units)} compilation units in ',
                          f'{time.time() - start:.3f}s')

    ###### Unit-level queries.

    def num_units(self):
        return len(self._units)

    def iter_units(self):
        return iter(self._units)

    @property
    def units(self):
        return list(self._units)

    def get_unit(self, unit_index):
        """ Return the unit at 0-based unit_index in ingestion order, or None. """
        if unit_index is None or unit_index < 0 or unit_index >= len(self._units):
            return None
        return self._units[unit_index]

    def unit_for_addr(self, addr):
        """
        Return the first unit whose [low_pc, high_pc) contains addr, or None.
        """
        if addr is None:
            return None
        for unit in self._units:
            if unit.cu_contains_pc(addr):
                return unit
        return None

    def subprogram_for_addr(self, addr):
        unit = self.unit_for_addr(addr)
        if unit is None:
            return None
        return unit.subprogram_for_pc(addr)

    def get_source_language(self, unit_index):
        unit = self.get_unit(unit_index)
        if unit is None:
            return 0
        return unit.language

    def get_full_source_filename_by_index(self, unit_index):
        unit = self.get_unit(unit_index)
        if unit is None:
            return None
        return unit.full_filename

    def get_source_filename_by_index(self, unit_index):
        unit = self.get_unit(unit_index)
        if unit is None:
            return None
        return unit.source_filename

    def get_num_lines(self, unit_index, used=False):
        """
        Return the number of raw source lines of a unit, or with used=True the number of
        line-table rows that carry source.
        """
        unit = self.get_unit(unit_index)
        if unit is None:
            return 0
        if used:
            return len(unit.used_line_texts)
        return len(unit.source_lines)

    def get_line_texts(self, unit_index, used=False):
        """
        Return the raw source lines of a unit, or with used=True the text of each line-table
        row. Returns None for an unknown unit.
        """
        unit = self.get_unit(unit_index)
        if unit is None:
            return None
        if used:
            return list(unit.used_line_texts)
        return list(unit.source_lines)

    def get_used_line_numbers(self, unit_index):
        """ 1-based source line number of each line-table row of the unit, or None. """
        unit = self.get_unit(unit_index)
        if unit is None:
            return None
        return [entry.line for entry in unit.used_lines]

    def get_used_line_indices(self, unit_index):
        """ 0-based source line index of each line-table row of the unit, or None. """
        unit = self.get_unit(unit_index)
        if unit is None:
            return None
        return list(unit.used_line_indices)

    ###### Address queries.

    def get_full_source_filename(self, addr):
        """
        Return (full_path, FileStatus) for the unit containing addr, or (None, None).
        """
        unit = self.unit_for_addr(addr)
        if unit is None:
            return (None, None)
        return (unit.full_filename, unit.status)

    def get_source_filename(self, addr):
        unit = self.unit_for_addr(addr)
        if unit is None:
            return None
        return unit.source_filename

    def get_function_name(self, addr):
        """ Name of the subprogram whose range contains addr, or None. """
        subprogram = self.subprogram_for_addr(addr)
        if subprogram is None:
            return None
        return subprogram.name

    def get_symbol_name(self, addr):
        """ Name of the subprogram starting exactly at addr, or None. """
        unit = self.unit_for_addr(addr)
        if unit is None:
            return None
        subprogram = unit.subprogram_starting_at(addr)
        if subprogram is None:
            return None
        return subprogram.name

    def _lookup_line(self, addr, tag=None):
        """
        @return (line_number, text) for addr, or None.
        """
        unit = self.unit_for_addr(addr)
        if unit is None:
            return None

        subprogram = unit.subprogram_for_pc(addr)
        if subprogram is not None:
            if tag == dwarfdefs.TAG_SUBPROGRAM:
                return (subprogram.decl_line, subprogram.line_text)
            entry = subprogram.line_entry_for_pc(addr)
            if entry is not None:
                return (entry.line, entry.text)

        # Code outside every subprogram's line slice may still have an exact row.
        entry = unit.used_line_at(addr)
        if entry is not None:
            return (entry.line, entry.text)
        return None

    def get_line_number(self, addr, tag=None):
        """
        Return the 1-based source line for addr: the exact line-table row, else the nearest
        preceding row within the subprogram. With tag='DW_TAG_subprogram', return the
        subprogram's declaration line. Returns 0 when unknown.
        """
        found = self._lookup_line(addr, tag)
        if found is None:
            return 0
        return found[0]

    def get_line_text(self, addr, tag=None):
        """ Like get_line_number() but returns the line's text, or None. """
        found = self._lookup_line(addr, tag)
        if found is None:
            return None
        return found[1]

    def get_line_text_for_line(self, addr, line_num):
        """
        Text of line_num within the subprogram containing addr: the declaration line, or the
        first line entry with that number.
        """
        subprogram = self.subprogram_for_addr(addr)
        if subprogram is None:
            return None
        if subprogram.decl_line == line_num:
            return subprogram.line_text
        for entry in subprogram.lines:
            if entry.line == line_num:
                return entry.text
        return None

    def get_unit_line_text(self, addr, line_num):
        """ Raw text of 1-based line_num in the source of the unit containing addr. """
        unit = self.unit_for_addr(addr)
        if unit is None:
            return None
        return unit.line_text(line_num)

    ###### Variable queries.

    def _variables_for_addr(self, addr):
        if not addr:
            return self._globals

        subprogram = self.subprogram_for_addr(addr)
        if subprogram is None:
            return []
        return subprogram.getVariables()

    def get_num_variables(self, addr=None):
        """
        Number of globals across all units when addr is None or 0; otherwise the number of
        locals and parameters of the subprogram containing addr.
        """
        return len(self._variables_for_addr(addr))

    def get_variable(self, addr, index):
        """
        Return the Variable at 1-based index, within the same scope as get_num_variables(addr).
        Global indices run continuously across units. Returns None if out of range.
        """
        variables = self._variables_for_addr(addr)
        if index is None or index < 1 or index > len(variables):
            return None
        return variables[index - 1]

    def get_variables(self, addr=None):
        return list(self._variables_for_addr(addr))

    def get_global_variable_addr(self, name):
        """ Address of the first global named 'name', or 0. """
        var = self._global_names.get(name)
        if var is None:
            return 0
        return var.addr

    def get_global_variable(self, name):
        return self._global_names.get(name)

    def global_names_with_prefix(self, prefix):
        """
        Return the sorted global variable names starting with prefix.
        """
        names = []
        for name in self._global_names.irange(minimum=prefix):
            if not name.startswith(prefix):
                break
            names.append(name)
        return names

    def __repr__(self):
        return f'SymbolDatabase({len(self._units)} units, {len(self._globals)} globals)'


def open_elf(elf_name, print_q, search_paths=None, config=None):
    """
    Build a SymbolDatabase from the DWARF debug info of an ELF executable.

    @raise SymbolDatabaseError if the file can't be read or holds no debug info.
    """
    # pyelftools is only needed to read ELF files.
    from elftools.common.exceptions import ELFError, DWARFError
    from dwarf_symdb.elf_source import ElfDebugInfoSource

    try:
        source = ElfDebugInfoSource(elf_name)
    except (OSError, ELFError, DWARFError) as e:
        raise SymbolDatabaseError(f'Cannot read ELF file {elf_name}: {e}') from e

    with source:
        if not source.has_debug_info:
            raise SymbolDatabaseError(f'No debug information in {os.path.realpath(elf_name)}')
        try:
            return SymbolDatabase(source, print_q, search_paths=search_paths, config=config)
        except (ELFError, DWARFError) as e:
            raise SymbolDatabaseError(f'Error reading debug info from {elf_name}: {e}') from e
