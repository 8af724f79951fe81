"""mortarQL schema models: dialects, entity mappings, predicate trees."""
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import (
    DialectDescriptor,
    DialectRegistry,
    PagingStyle,
    UpsertStyle,
)
from mortarql.schema.entity import ColumnMeta, EntityMapping
from mortarql.schema.expressions import (
    Aggregate,
    And,
    Comparison,
    ComparisonOp,
    Constant,
    InList,
    MemberAccess,
    MemberBoolean,
    MethodCall,
    Not,
    Or,
    Predicate,
    StringContains,
)

__all__ = [
    "PlaceholderContext",
    "DialectDescriptor",
    "DialectRegistry",
    "PagingStyle",
    "UpsertStyle",
    "ColumnMeta",
    "EntityMapping",
    "Aggregate",
    "And",
    "Comparison",
    "ComparisonOp",
    "Constant",
    "InList",
    "MemberAccess",
    "MemberBoolean",
    "MethodCall",
    "Not",
    "Or",
    "Predicate",
    "StringContains",
]
