"""Built-in placeholder handlers."""
from mortarql.compile.handlers.base import PlaceholderHandler, StaticHandler
from mortarql.compile.handlers.clauses import (
    DistinctHandler,
    GroupByHandler,
    LimitHandler,
    OffsetHandler,
    OrderByHandler,
)
from mortarql.compile.handlers.core import (
    BatchValuesHandler,
    ColumnsHandler,
    SetHandler,
    TableHandler,
    ValuesHandler,
    WrapHandler,
)
from mortarql.compile.handlers.functions import (
    AGGREGATES,
    DATE_PARTS,
    DIALECT_LITERALS,
    SCALAR_FUNCTIONS,
    WINDOW_FUNCTIONS,
    CaseHandler,
    CoalesceHandler,
    DateAddHandler,
    DateDiffHandler,
    IfNullHandler,
    RoundHandler,
    TodayHandler,
    TrimHandler,
)
from mortarql.compile.handlers.predicates import (
    BetweenHandler,
    HavingHandler,
    InHandler,
    LikeHandler,
    NullCheckHandler,
    WhereHandler,
)
from mortarql.compile.handlers.statements import STATEMENTS, JoinHandler
from mortarql.compile.handlers.subqueries import (
    ExistsHandler,
    InSubqueryHandler,
    SubqueryHandler,
    UnionHandler,
)
from mortarql.compile.handlers.upsert import UpsertHandler

BUILTIN_HANDLERS: tuple[PlaceholderHandler, ...] = (
    *STATEMENTS,
    JoinHandler(),
    TableHandler(),
    ColumnsHandler(),
    ValuesHandler(),
    SetHandler(),
    BatchValuesHandler(),
    WrapHandler(),
    WhereHandler(),
    BetweenHandler(),
    InHandler(),
    LikeHandler(),
    NullCheckHandler("isnull", negate=False),
    NullCheckHandler("notnull", negate=True),
    HavingHandler(),
    OrderByHandler(),
    GroupByHandler(),
    DistinctHandler(),
    LimitHandler(),
    OffsetHandler(),
    CoalesceHandler(),
    IfNullHandler(),
    CaseHandler(),
    *AGGREGATES,
    *WINDOW_FUNCTIONS,
    TodayHandler(),
    *DATE_PARTS,
    DateAddHandler(),
    DateDiffHandler(),
    *SCALAR_FUNCTIONS,
    TrimHandler(),
    RoundHandler(),
    *DIALECT_LITERALS,
    ExistsHandler(),
    InSubqueryHandler(),
    UnionHandler(),
    SubqueryHandler(),
    UpsertHandler(),
)

__all__ = [
    "BUILTIN_HANDLERS",
    "PlaceholderHandler",
    "StaticHandler",
]
