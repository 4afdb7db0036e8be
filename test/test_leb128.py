#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import unittest

from dwarf_symdb.leb128 import read_sleb128, read_uleb128


class TestLeb128(unittest.TestCase):

    def test_uleb_single_byte(self):
        self.assertEqual(read_uleb128([0x02]), 2)
        self.assertEqual(read_uleb128(b'\x7f'), 127)

    def test_uleb_multi_byte(self):
        self.assertEqual(read_uleb128([0x80, 0x01]), 128)
        self.assertEqual(read_uleb128([0xe5, 0x8e, 0x26]), 624485)

    def test_uleb_stops_at_terminator(self):
        # Trailing bytes after the terminating byte belong to something else.
        self.assertEqual(read_uleb128([0x04, 0x99, 0x99]), 4)

    def test_sleb_negative(self):
        self.assertEqual(read_sleb128([0x7f]), -1)
        self.assertEqual(read_sleb128([0x68]), -24)
        self.assertEqual(read_sleb128([0x80, 0x7f]), -128)

    def test_sleb_positive(self):
        self.assertEqual(read_sleb128([0x3f]), 63)
        self.assertEqual(read_sleb128([0xc0, 0x00]), 64)

    def test_truncated_and_empty(self):
        self.assertEqual(read_uleb128([]), 0)
        self.assertEqual(read_sleb128([]), 0)
        self.assertEqual(read_uleb128([0x81]), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
