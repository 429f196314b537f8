from __future__ import annotations

from pathlib import Path

from cessation.artifacts import ValidationResult, validate_required_artifacts, validate_schema_and_logic


def run_artifact_audit(output_dir: Path, include_figures: bool = True) -> ValidationResult:
    errors = []
    errors.extend(validate_required_artifacts(output_dir=output_dir, include_figures=include_figures))
    schema = validate_schema_and_logic(output_dir=output_dir)
    errors.extend(schema.errors)
    return ValidationResult(ok=len(errors) == 0, errors=errors)
