"""
XMLTV package for EPG Service

Document building, validation and the streaming transforms (tag scanner,
date-range filter and placeholder injector).
"""
from app.xmltv.builder import XMLTVBuilder
from app.xmltv.date_filter import DateRangeFilter
from app.xmltv.placeholder import PlaceholderInjector, PlaceholderSpec, parse_duration
from app.xmltv.scanner import Element, Passthrough, RootClose, TagScanner
from app.xmltv.transform import StreamTransform, TransformPipeline
from app.xmltv.validator import validate_xmltv, validate_xmltv_file

__all__ = [
    'XMLTVBuilder',
    'DateRangeFilter',
    'PlaceholderInjector',
    'PlaceholderSpec',
    'parse_duration',
    'Element',
    'Passthrough',
    'RootClose',
    'TagScanner',
    'StreamTransform',
    'TransformPipeline',
    'validate_xmltv',
    'validate_xmltv_file',
]
