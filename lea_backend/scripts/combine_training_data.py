"""
Combine technical and non-technical classifier training data.

Keeps the ``technical`` examples of the first file, appends every example of
the second, shuffles the result and writes it as indented JSON.
"""
import argparse
import json
import random
from pathlib import Path
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, TypeAdapter

from lea_backend.utils.logger import logger

DEFAULT_TECHNICAL_PATH = "data/training-data-with-body.json"
DEFAULT_NON_TECHNICAL_PATH = "data/non-technical-posts.json"
DEFAULT_OUTPUT_PATH = "data/training-data.json"


class TrainingExample(BaseModel):
    text: str
    label: Literal["technical", "non-technical"]


_EXAMPLES = TypeAdapter(List[TrainingExample])


def load_examples(path: Path) -> List[TrainingExample]:
    """Read a training-data file; raises ``ValidationError`` on malformed records."""
    return _EXAMPLES.validate_json(path.read_text(encoding="utf-8"))


def technical_only(examples: List[TrainingExample]) -> List[TrainingExample]:
    return [e for e in examples if e.label == "technical"]


def shuffle_in_place(items: list, rng: random.Random) -> None:
    """Fisher-Yates shuffle."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def average_length(examples: List[TrainingExample]) -> float:
    if not examples:
        return 0.0
    return sum(len(e.text) for e in examples) / len(examples)


def combine(
    technical: List[TrainingExample],
    non_technical: List[TrainingExample],
    rng: Optional[random.Random] = None,
) -> List[TrainingExample]:
    """Concatenate both lists and shuffle the result."""
    combined = list(technical) + list(non_technical)
    shuffle_in_place(combined, rng or random.Random())
    return combined


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Combine technical and non-technical training data")
    parser.add_argument("--technical", default=DEFAULT_TECHNICAL_PATH, help="JSON file with technical examples")
    parser.add_argument("--non-technical", default=DEFAULT_NON_TECHNICAL_PATH, help="JSON file with non-technical examples")
    parser.add_argument("--output", default=DEFAULT_OUTPUT_PATH, help="Where to write the combined dataset")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible shuffle")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    technical = technical_only(load_examples(Path(args.technical)))
    non_technical = load_examples(Path(args.non_technical))

    print("=== Loading data ===")
    print(f"Technical examples: {len(technical)}")
    print(f"Non-technical examples: {len(non_technical)}")

    combined = combine(technical, non_technical, random.Random(args.seed))

    tech_count = sum(1 for e in combined if e.label == "technical")
    non_tech_count = len(combined) - tech_count

    print("\n=== Combined dataset ===")
    print(f"Total examples: {len(combined)}")
    print(f"  Technical: {tech_count} (avg {average_length(technical):.0f} chars)")
    print(f"  Non-technical: {non_tech_count} (avg {average_length(non_technical):.0f} chars)")
    print(f"Overall avg length: {average_length(combined):.0f} chars")

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    payload = [e.model_dump() for e in combined]
    output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"\nSaved to: {output}")
    logger.info("Wrote %d training examples to %s", len(combined), output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
