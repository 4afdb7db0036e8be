#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import os
import unittest

from dwarf_symdb.dwarfdefs import FileStatus
import dwarf_symdb.srcfile as srcfile
from symdb_testcase import *


class TestSourcePaths(unittest.TestCase):
    """
    Path resolution, using '/' or '\\' as the host separator explicitly.
    """

    def test_cygdrive_rewrite(self):
        (directory, filename, full) = srcfile.resolve_source_path('main.c', '/cygdrive/c/src',
                                                                  [], sep='/')
        self.assertEqual(directory, 'c:/src')
        self.assertEqual(full, 'c:/src/main.c')

    def test_cygdrive_without_drive_letter(self):
        self.assertEqual(srcfile.rewrite_cygdrive('/cygdrive/shared/x'), '/shared/x')
        self.assertEqual(srcfile.rewrite_cygdrive('/home/me'), '/home/me')

    def test_collapse_parent_dirs(self):
        (_, _, full) = srcfile.resolve_source_path('b/../c/main.c', 'a', [], sep='/')
        self.assertEqual(full, 'a/c/main.c')
        self.assertEqual(srcfile.collapse_parent_dirs('/x/y/z/../../w.c', '/'), '/x/w.c')

    def test_backslash_host(self):
        (_, filename, full) = srcfile.resolve_source_path('sub/../main.c', 'c:\\proj', [],
                                                          sep='\\')
        self.assertEqual(filename, 'sub\\..\\main.c')
        self.assertEqual(full, 'c:\\proj\\main.c')
        self.assertEqual(srcfile.collapse_parent_dirs('c:\\a\\.\\b\\\\c.c', '\\'), 'c:\\a\\b\\c.c')

    def test_drive_letter_filename_used_as_is(self):
        (_, _, full) = srcfile.resolve_source_path('d:/lib/x.c', '/build', [], sep='/')
        self.assertEqual(full, 'd:/lib/x.c')

    def test_missing_directory_defaults_to_dot(self):
        (directory, _, full) = srcfile.resolve_source_path('main.c', None, [], sep='/')
        self.assertEqual(directory, '.')
        self.assertEqual(full, './main.c')


class TestSourceFiles(SymdbTestCase):

    def test_probe_returns_first_failed_open(self):
        # The probe picks the first search path where the file can *not* be opened.
        present = os.path.join(self.tmpdir, 'present')
        absent = os.path.join(self.tmpdir, 'absent')
        os.mkdir(present)
        os.mkdir(absent)
        self.write_source('main.c', 'int x;\n', directory=present)

        self.assertEqual(srcfile.probe_search_paths('main.c', [present, absent]), absent)
        self.assertIsNone(srcfile.probe_search_paths('main.c', [present]))
        self.assertIsNone(srcfile.probe_search_paths('main.c', []))

        (directory, _, _) = srcfile.resolve_source_path('main.c', None, [present, absent])
        self.assertEqual(directory, absent)

    def test_crlf_normalization(self):
        path = self.write_source('crlf.c', 'one\r\ntwo\r\nthree')
        (text, lines) = srcfile.load_source_text(path)
        self.assertEqual(text, 'one\ntwo\nthree\n')
        self.assertEqual(lines, ['one', 'two', 'three'])

    def test_trailing_newline_adds_no_empty_line(self):
        path = self.write_source('nl.c', 'a\nb\n')
        (_, lines) = srcfile.load_source_text(path)
        self.assertEqual(lines, ['a', 'b'])

    def test_empty_file(self):
        path = self.write_source('empty.c', '')
        self.assertEqual(srcfile.load_source_text(path), ('', []))

    def test_unreadable_file(self):
        self.assertIsNone(srcfile.load_source_text(os.path.join(self.tmpdir, 'nope.c')))

    def test_file_status(self):
        path = self.write_source('stat.c', 'x\n')
        mtime = os.stat(path).st_mtime

        (status, statbuf) = srcfile.check_source_file(path, mtime + 100)
        self.assertEqual(status, FileStatus.OK)
        self.assertIsNotNone(statbuf)

        (status, _) = srcfile.check_source_file(path, mtime - 100)
        self.assertEqual(status, FileStatus.OUTDATED_FILE)

        (status, _) = srcfile.check_source_file(path, None)
        self.assertEqual(status, FileStatus.OK)

        (status, statbuf) = srcfile.check_source_file(os.path.join(self.tmpdir, 'gone.c'))
        self.assertEqual(status, FileStatus.NO_FILE)
        self.assertIsNone(statbuf)

    def test_embedded_nul_in_path(self):
        bad = os.path.join(self.tmpdir, 'a\x00b.c')
        self.assertEqual(srcfile.check_source_file(bad), (FileStatus.NO_FILE_INFO, None))
        self.assertIsNone(srcfile.load_source_text(bad))
        self.assertEqual(srcfile.probe_search_paths('a\x00b.c', [self.tmpdir]), self.tmpdir)

        db = self.make_db([sample_unit(self.tmpdir + '\x00junk')])
        self.assertEqual(db.get_unit(0).status, FileStatus.NO_FILE_INFO)
        self.assertEqual(db.get_function_name(0x1010), 'main')

    def test_status_names(self):
        self.assertEqual(FileStatus.name_of(FileStatus.OK), 'Ok')
        self.assertEqual(FileStatus.name_of(FileStatus.NO_FILE_INFO), 'NoFileInfo')


if __name__ == "__main__":
    unittest.main(verbosity=2)
