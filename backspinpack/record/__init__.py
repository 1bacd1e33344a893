"""Record files: persistence, versioning and validation."""

from backspinpack.record.record import RECORD_SUFFIX, Record, build_record_path
from backspinpack.record.schema import (
    CURRENT_FORMAT_VERSION,
    SUPPORTED_FORMAT_VERSIONS,
    SUPPORTED_MAJOR_VERSION,
    is_version_supported,
    load_record_schema,
    parse_format_version,
    validate_record_data,
)

__all__ = [
    "Record",
    "RECORD_SUFFIX",
    "build_record_path",
    "CURRENT_FORMAT_VERSION",
    "SUPPORTED_FORMAT_VERSIONS",
    "SUPPORTED_MAJOR_VERSION",
    "is_version_supported",
    "load_record_schema",
    "parse_format_version",
    "validate_record_data",
]
