# (c) Copyright 2022 Aaron Kimball

SYMDB_VERSION = [0, 1, 0]
SYMDB_VERSION_STR = '.'.join(map(str, SYMDB_VERSION))
FULL_SYMDB_VERSION_STR = f'DWARF symbol database (dwarf-symdb) version {SYMDB_VERSION_STR}'

if __name__ == '__main__':
    print(FULL_SYMDB_VERSION_STR)
