"""Shared types for the bulkload package."""

Record = tuple
Params = tuple | list | dict
ParamsList = list[tuple] | list[list]
