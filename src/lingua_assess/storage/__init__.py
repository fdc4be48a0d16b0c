from .catalog import AssessmentCatalog, parse_definition, read_definition
from .jsonl_store import AttemptJsonlStore

__all__ = ["AssessmentCatalog", "AttemptJsonlStore", "parse_definition", "read_definition"]
