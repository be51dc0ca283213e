from proxy_bench.queries.source import DEFAULT_QUERIES, QuerySource, load_queries

__all__ = [
    "DEFAULT_QUERIES",
    "QuerySource",
    "load_queries",
]
