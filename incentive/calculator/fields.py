# ==============================================================================
# incentive/calculator/fields.py
# ------------------------------------------------------------------------------
# Resolves the logical field names used in rules to base-file columns.
# ==============================================================================

import logging

from incentive.calculator.schema import (
    Aggregation, DataType, EvaluationLevel, IMPLICIT_AGENT_FIELD, IMPLICIT_AMOUNT_FIELD,
    KPI_FIELD_SECTIONS,
)
from incentive.models import FieldMapping


class FieldMapper:
    """
    A single logical-name -> FieldMapping table built from the scheme's
    kpiConfig catalog. Later catalog entries with the same name win.

    Args:
        scheme (Scheme): The parsed scheme.
        columns (iterable): Columns of the base file. When given, a mapping
            whose source column is not among them counts as unresolved.
    """

    def __init__(self, scheme, columns=None):
        self.base_file = scheme.base_mapping.source_file
        self.columns = set(columns) if columns is not None else None
        self.mappings = {}

        for section in KPI_FIELD_SECTIONS:
            for mapping in scheme.field_catalog.get(section, []):
                if not mapping.name or not mapping.source_field:
                    continue
                if mapping.source_file and mapping.source_file != self.base_file:
                    logging.debug(f"Field '{mapping.name}' maps to '{mapping.source_file}', not the base file. Ignored.")
                    continue
                self.mappings[mapping.name] = mapping

        base = scheme.base_mapping
        implicit = [
            (IMPLICIT_AGENT_FIELD, base.agent_field, DataType.STRING),
            (base.agent_field, base.agent_field, DataType.STRING),
            (IMPLICIT_AMOUNT_FIELD, base.amount_field, DataType.NUMBER),
            (base.amount_field, base.amount_field, DataType.NUMBER),
        ]
        for name, source, data_type in implicit:
            if name and source and name not in self.mappings:
                self.mappings[name] = FieldMapping(
                    name=name,
                    source_field=source,
                    data_type=data_type,
                    evaluation_level=EvaluationLevel.PER_RECORD,
                    aggregation=Aggregation.NOT_APPLICABLE,
                )

    def __contains__(self, name):
        return self.resolve(name) is not None

    def resolve(self, name):
        """Returns the FieldMapping for a logical name, or None when unresolved."""
        mapping = self.mappings.get(name)
        if mapping is None:
            return None
        if self.columns is not None and mapping.source_field not in self.columns:
            return None
        return mapping
