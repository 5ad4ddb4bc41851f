# Magic
ARCHIVE_MAGIC = b"FJSYS\x00\x00\x00"  # 8 bytes: "FJSYS\0\0\0"

# Header layout (after the magic): header_size u32, file_names_size u32,
# file_count u32, reserved[64]
HEADER_SIZE = 76
RESERVED_SIZE = 64

# Table starts right after magic + header
TABLE_OFFSET = len(ARCHIVE_MAGIC) + HEADER_SIZE  # 0x54
TABLE_RECORD_SIZE = 16


# Asset extensions handled by the codec layer (compared case-insensitively)
MGD_EXTENSION = b".mgd"
MSD_EXTENSION = b".msd"

# MGD image container
MGD_MAGIC = b"MGD "
MGD_DATA_OFFSET = 0x5C
MGD_COMPRESSION_NONE = 0
MGD_COMPRESSION_SGD = 1
MGD_COMPRESSION_PNG = 2

# MSD script keystream block size
MSD_BLOCK_SIZE = 32


DEFAULT_NAME_ENCODING = "cp932"


def file_names_start(file_count: int) -> int:
    return file_count * TABLE_RECORD_SIZE + TABLE_OFFSET
