# (c) Copyright 2022 Aaron Kimball
#
# DWARF constants and the enum-like classes shared by the builders and the query surface.

# Location expression opcodes.
DW_OP_addr = 0x03

# Base type encoding (DW_AT_encoding) assumed for 4-byte enums that carry none.
DW_ATE_signed = 0x5

# Encoding reported for any variable whose type chain runs through a pointer.
POINTER_ENCODING = 0x10

# Tags handled by the builders. Anything else is skipped.
TAG_COMPILE_UNIT = 'DW_TAG_compile_unit'
TAG_VARIABLE = 'DW_TAG_variable'
TAG_FORMAL_PARAMETER = 'DW_TAG_formal_parameter'
TAG_SUBPROGRAM = 'DW_TAG_subprogram'
TAG_MEMBER = 'DW_TAG_member'

TAG_BASE_TYPE = 'DW_TAG_base_type'
TAG_TYPEDEF = 'DW_TAG_typedef'
TAG_UNION_TYPE = 'DW_TAG_union_type'
TAG_STRUCTURE_TYPE = 'DW_TAG_structure_type'
TAG_POINTER_TYPE = 'DW_TAG_pointer_type'
TAG_CONST_TYPE = 'DW_TAG_const_type'
TAG_ARRAY_TYPE = 'DW_TAG_array_type'
TAG_SUBRANGE_TYPE = 'DW_TAG_subrange_type'
TAG_SUBROUTINE_TYPE = 'DW_TAG_subroutine_type'
TAG_ENUMERATION_TYPE = 'DW_TAG_enumeration_type'

TYPE_TAGS = frozenset([
    TAG_BASE_TYPE,
    TAG_TYPEDEF,
    TAG_UNION_TYPE,
    TAG_STRUCTURE_TYPE,
    TAG_POINTER_TYPE,
    TAG_CONST_TYPE,
    TAG_ARRAY_TYPE,
    TAG_SUBRANGE_TYPE,
    TAG_SUBROUTINE_TYPE,
    TAG_ENUMERATION_TYPE,
])

# Attribute forms whose value is a plain unsigned constant.
UNSIGNED_FORMS = frozenset([
    'DW_FORM_data1', 'DW_FORM_data2', 'DW_FORM_data4', 'DW_FORM_data8', 'DW_FORM_udata',
])

SIGNED_FORMS = frozenset(['DW_FORM_sdata', 'DW_FORM_implicit_const'])

BLOCK_FORMS = frozenset([
    'DW_FORM_block', 'DW_FORM_block1', 'DW_FORM_block2', 'DW_FORM_block4', 'DW_FORM_exprloc',
])

# Unit-relative reference forms; DW_FORM_ref_addr is already a global offset.
LOCAL_REF_FORMS = frozenset([
    'DW_FORM_ref1', 'DW_FORM_ref2', 'DW_FORM_ref4', 'DW_FORM_ref8', 'DW_FORM_ref_udata',
])
GLOBAL_REF_FORMS = frozenset(['DW_FORM_ref_addr'])


class FileStatus(object):
    """
    State of the source file claimed by a compilation unit.
    """

    OK = 0              # Found, not newer than the executable, text loaded.
    NO_FILE = 1         # Could not be opened.
    OUTDATED_FILE = 2   # Modified after the executable was built.
    NO_FILE_INFO = 3    # stat() on the resolved path failed.

    _names = {
        OK: 'Ok',
        NO_FILE: 'NoFile',
        OUTDATED_FILE: 'OutdatedFile',
        NO_FILE_INFO: 'NoFileInfo',
    }

    @staticmethod
    def name_of(status):
        return FileStatus._names.get(status, f'<unknown status {status}>')


class TypeFlags(object):
    """
    Capability bits accumulated while walking a variable's type chain.
    """

    STRUCTURE   =  0x01
    POINTER     =  0x02
    SUBRANGE    =  0x04
    ARRAY       =  0x08
    CONST       =  0x10
    TYPEDEF     =  0x20
    ENUM        =  0x40
    SUBROUTINE  =  0x80
    UNION       = 0x100

    _names = [
        (STRUCTURE, 'struct'),
        (UNION, 'union'),
        (POINTER, 'pointer'),
        (ARRAY, 'array'),
        (SUBRANGE, 'subrange'),
        (CONST, 'const'),
        (TYPEDEF, 'typedef'),
        (ENUM, 'enum'),
        (SUBROUTINE, 'subroutine'),
    ]

    @staticmethod
    def is_composite(flags):
        """ Return True if the flags describe a struct or union. """
        return (flags & (TypeFlags.STRUCTURE | TypeFlags.UNION)) != 0

    @staticmethod
    def describe(flags):
        """
        Return a readable, comma-separated list of the capabilities set in 'flags'.
        """
        return ', '.join([name for (bit, name) in TypeFlags._names if flags & bit])
