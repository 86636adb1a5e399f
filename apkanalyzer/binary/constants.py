"""Chunk type tokens and value types from the Android resource format (ResourceTypes.h)."""

RES_NULL_TYPE = 0x0000
RES_STRING_POOL_TYPE = 0x0001
RES_TABLE_TYPE = 0x0002
RES_XML_TYPE = 0x0003

# Chunk types in RES_XML_TYPE
RES_XML_START_NAMESPACE_TYPE = 0x0100
RES_XML_END_NAMESPACE_TYPE = 0x0101
RES_XML_START_ELEMENT_TYPE = 0x0102
RES_XML_END_ELEMENT_TYPE = 0x0103
RES_XML_CDATA_TYPE = 0x0104
RES_XML_RESOURCE_MAP_TYPE = 0x0180

# Chunk types in RES_TABLE_TYPE
RES_TABLE_PACKAGE_TYPE = 0x0200
RES_TABLE_TYPE_TYPE = 0x0201
RES_TABLE_TYPE_SPEC_TYPE = 0x0202
RES_TABLE_LIBRARY_TYPE = 0x0203
RES_TABLE_OVERLAYABLE_TYPE = 0x0204
RES_TABLE_OVERLAYABLE_POLICY_TYPE = 0x0205
RES_TABLE_STAGED_ALIAS_TYPE = 0x0206

CHUNK_TYPE_NAMES = {
    RES_NULL_TYPE: "null",
    RES_STRING_POOL_TYPE: "string_pool",
    RES_TABLE_TYPE: "table",
    RES_XML_TYPE: "xml",
    RES_XML_START_NAMESPACE_TYPE: "xml_start_namespace",
    RES_XML_END_NAMESPACE_TYPE: "xml_end_namespace",
    RES_XML_START_ELEMENT_TYPE: "xml_start_element",
    RES_XML_END_ELEMENT_TYPE: "xml_end_element",
    RES_XML_CDATA_TYPE: "xml_cdata",
    RES_XML_RESOURCE_MAP_TYPE: "xml_resource_map",
    RES_TABLE_PACKAGE_TYPE: "table_package",
    RES_TABLE_TYPE_TYPE: "table_type",
    RES_TABLE_TYPE_SPEC_TYPE: "table_type_spec",
    RES_TABLE_LIBRARY_TYPE: "table_library",
    RES_TABLE_OVERLAYABLE_TYPE: "table_overlayable",
    RES_TABLE_OVERLAYABLE_POLICY_TYPE: "table_overlayable_policy",
    RES_TABLE_STAGED_ALIAS_TYPE: "table_staged_alias",
}

# Res_value data types
TYPE_NULL = 0x00
TYPE_REFERENCE = 0x01
TYPE_ATTRIBUTE = 0x02
TYPE_STRING = 0x03
TYPE_FLOAT = 0x04
TYPE_DIMENSION = 0x05
TYPE_FRACTION = 0x06
TYPE_INT_DEC = 0x10
TYPE_INT_HEX = 0x11
TYPE_INT_BOOLEAN = 0x12
TYPE_INT_COLOR_ARGB8 = 0x1C
TYPE_INT_COLOR_RGB8 = 0x1D
TYPE_INT_COLOR_ARGB4 = 0x1E
TYPE_INT_COLOR_RGB4 = 0x1F

# Complex (dimension / fraction) encoding
COMPLEX_UNIT_MASK = 0xF
COMPLEX_RADIX_SHIFT = 4
COMPLEX_RADIX_MASK = 0x3
COMPLEX_MANTISSA_SHIFT = 8
COMPLEX_MANTISSA_MASK = 0xFFFFFF

DIMENSION_UNITS = ("px", "dp", "sp", "pt", "in", "mm")
FRACTION_UNITS = ("%", "%p")

# String pool flags
UTF8_FLAG = 1 << 8

NO_INDEX = 0xFFFFFFFF

ANDROID_NAMESPACE = "http://schemas.android.com/apk/res/android"
