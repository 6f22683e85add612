"""
Questionnaire Response Model (QRM) Package

Fills structured clinical questionnaires (FHIR R4 Questionnaire) into
QuestionnaireResponse resources: typed answers per item instance,
conditional enablement, ordinal scoring and response serialization.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Widgets, rendering or focus management
    - Persistence or transport
    - Expression languages (FHIRPath, CQL)

Item definitions are derived once and never change.
Answers change only through their Answer Models.
The Response Tree is the single place that recomputes and publishes.
"""

__version__ = "0.1.0"
