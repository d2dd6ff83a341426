"""Exceptions raised by the CSV import pipeline"""
from typing import List


class ImportPipelineError(Exception):
    """Base exception for import operations"""
    pass


class CSVParseError(ImportPipelineError):
    pass


class CommitTransportError(ImportPipelineError):
    """The commit request as a whole failed; none of the batch is assumed applied."""
    pass


class ImportStateError(ImportPipelineError):
    pass


class ImportInProgressError(ImportStateError):
    pass


class MappingValidationError(ImportPipelineError):
    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Required fields are not mapped: {', '.join(missing)}")


class EntityValidationError(ImportPipelineError):
    """A single record was rejected by the entity's own validation."""
    pass
