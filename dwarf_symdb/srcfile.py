# (c) Copyright 2022 Aaron Kimball
#
# Locate, validate and load the source file a compilation unit claims to be built from.

import os

from dwarf_symdb.dwarfdefs import FileStatus

_CYGDRIVE_PREFIX = '/cygdrive/'


def conform_separators(path, sep=os.sep):
    """
    Rewrite every path separator in 'path' to the host's separator 'sep'.
    """
    if sep == '\\':
        return path.replace('/', '\\')
    return path.replace('\\', sep)


def rewrite_cygdrive(directory):
    """
    Turn a cygwin '/cygdrive/c/src' directory into 'c:/src'.

    The '/cygdrive' prefix is dropped whenever present; the drive-letter rewrite only applies
    when what remains looks like '/<lowercase letter>/...'.
    """
    if not directory.startswith(_CYGDRIVE_PREFIX):
        return directory

    directory = directory[len(_CYGDRIVE_PREFIX) - 1:]  # Keep the leading '/'.
    if len(directory) > 2 and directory[0] == '/' and directory[2] == '/' \
            and 'a' <= directory[1] <= 'z':
        directory = directory[1] + ':' + directory[2:]
    return directory


def collapse_parent_dirs(path, sep=os.sep):
    """
    Remove '<dir>/../' segments (the offending '..' and its parent), repeatedly, until none
    remain. On a '\\' host, '\\.\\' and '\\\\' are also folded into a single separator.
    """
    parent_marker = sep + '..' + sep
    while True:
        idx = path.find(parent_marker)
        if idx >= 0:
            prev = path.rfind(sep, 0, idx)
            if sep == '\\':
                # A drive letter's ':' also bounds the parent segment.
                prev = max(prev, path.rfind(':', 0, idx))
            path = path[:prev + 1] + path[idx + len(parent_marker):]
            continue

        if sep != '\\':
            break

        if path.find('\\.\\') >= 0:
            path = path.replace('\\.\\', '\\', 1)
        elif path.find('\\\\') >= 0:
            path = path.replace('\\\\', '\\', 1)
        else:
            break

    return path


def probe_search_paths(filename, search_paths, sep=os.sep):
    """
    Probe each search path in order by trying to open '<search_path><sep><filename>'.

    The first search path where the open *fails* is returned; this is not a "file exists" test.
    Returns None when every probe opens successfully (or there are no search paths).
    """
    for search_path in search_paths or []:
        candidate = f'{search_path}{sep}{filename}'
        try:
            with open(candidate, 'rb'):
                pass
        except (OSError, ValueError):
            return search_path

    return None


def resolve_source_path(filename, directory, search_paths, sep=os.sep):
    """
    Work out where a compilation unit's source file lives.

    @param filename the DW_AT_name of the unit ('' if absent).
    @param directory the DW_AT_comp_dir of the unit, or None if absent.
    @param search_paths user-configured directories, in priority order.
    @return a tuple (directory, filename, full_path) with separators conformed to 'sep'.
    """
    filename = filename or ''
    if directory is None:
        directory = probe_search_paths(filename, search_paths, sep)
        if directory is None:
            directory = '.'
    else:
        directory = rewrite_cygdrive(directory)

    filename = conform_separators(filename, sep)

    if len(filename) > 1 and filename[1] == ':':
        # Already carries a drive letter; use as-is.
        full_path = filename
    else:
        full_path = f'{directory}{sep}{filename}'

    full_path = conform_separators(full_path, sep)
    full_path = collapse_parent_dirs(full_path, sep)
    return (directory, filename, full_path)


def check_source_file(full_path, exe_mtime=None):
    """
    Stat the resolved source path.

    @return a tuple (FileStatus, os.stat_result or None). A source file modified after
    exe_mtime is OUTDATED_FILE; when exe_mtime is None no staleness check is made.
    """
    try:
        statbuf = os.stat(full_path)
    except FileNotFoundError:
        return (FileStatus.NO_FILE, None)
    except (OSError, ValueError):
        return (FileStatus.NO_FILE_INFO, None)

    if exe_mtime is not None and statbuf.st_mtime > exe_mtime:
        return (FileStatus.OUTDATED_FILE, statbuf)

    return (FileStatus.OK, statbuf)


def load_source_text(full_path, encoding='latin-1'):
    """
    Read a source file and split it into lines.

    All carriage returns are dropped and the text is made to end with a newline before
    splitting, so the line array never carries a trailing empty entry.

    @return (text, lines), ('', []) for an empty file, or None if the file can't be read.
    """
    try:
        with open(full_path, 'rb') as f:
            data = f.read()
    except (OSError, ValueError):
        return None

    data = data.replace(b'\r', b'')
    if len(data) == 0:
        return ('', [])
    if not data.endswith(b'\n'):
        data += b'\n'

    text = data.decode(encoding, errors='replace')
    lines = text.split('\n')[:-1]
    return (text, lines)
