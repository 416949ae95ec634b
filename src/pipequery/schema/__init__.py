"""Schema navigation and YAML schema loading."""

from pipequery.schema.loader import SchemaLoader, SourceMap
from pipequery.schema.navigator import ReduceAlgebra, SchemaAlgebra, SchemaNavigator

__all__ = [
    "ReduceAlgebra",
    "SchemaAlgebra",
    "SchemaLoader",
    "SchemaNavigator",
    "SourceMap",
]
