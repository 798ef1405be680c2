#!/usr/bin/env python3
"""
Export JSON Schemas for the intake records.

Writes one schema file per model (ExtractedCall, CallRecord, Claim) and
validates the Claim model's own examples.
"""

import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from src.intake.schema import CallRecord, Claim, ExtractedCall

MODELS = {
    "extracted_call": ExtractedCall,
    "call_record": CallRecord,
    "claim": Claim,
}


def export_json_schemas(output_dir: str = "data/schemas") -> dict:
    """Export the JSON Schema of every intake model."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    schemas = {}
    for name, model in MODELS.items():
        schema = model.model_json_schema()
        output_file = out / f"{name}_schema.json"
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(schema, f, indent=2, ensure_ascii=False)

        print(f"✓ {schema['title']} -> {output_file} ({len(schema['properties'])} fields)")
        schemas[name] = schema
    return schemas


def validate_claim_examples(schema: dict) -> None:
    """Validate the examples embedded in the Claim schema."""
    examples = schema.get("examples", [])
    if not examples:
        print("⚠ No Claim examples in schema")
        return

    print(f"\n{'='*60}")
    print("Validating Claim Examples")
    print('='*60)

    for i, example in enumerate(examples, 1):
        try:
            claim = Claim.model_validate(example)
            print(f"  ✓ Example {i}: claim #{claim.claim_number} for {claim.homeowner_name}")
        except ValidationError as e:
            print(f"  ✗ Example {i} invalid: {e}")


def main():
    """Main entry point."""
    print("="*60)
    print("Voice Intake - JSON Schema Export")
    print("="*60)

    schemas = export_json_schemas()
    validate_claim_examples(schemas["claim"])


if __name__ == "__main__":
    main()
