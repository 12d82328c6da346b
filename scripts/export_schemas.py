"""Export JSON schemas for the API's wire models."""

import json
from pathlib import Path

from pydantic import BaseModel

from docchat.models import ChatMessage, Document, StatusEvent

MODELS: dict[str, type[BaseModel]] = {
    "Document": Document,
    "ChatMessage": ChatMessage,
    "StatusEvent": StatusEvent,
}


def main(schemas_dir: Path = Path("docs/schemas")) -> None:
    """Export schemas to docs/schemas/."""
    schemas_dir.mkdir(parents=True, exist_ok=True)

    for name, model in MODELS.items():
        path = schemas_dir / f"{name}.schema.json"
        with open(path, "w") as f:
            json.dump(model.model_json_schema(), f, indent=2)
        print(f"Exported {name} schema to {path}")


if __name__ == "__main__":
    main()
