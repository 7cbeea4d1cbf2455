"""
API Specs Schema Unification

Recursive type descriptors inferred from JSON samples, with a merge that
is commutative and associative: folding the same samples in any order
yields an equal SchemaNode.

Widening rules:
- object + object: union of properties, shared ones merged recursively;
  a property missing from any sample is no longer required
- array + array: element schemas merged (heterogeneous arrays allowed)
- differing scalar kinds accumulate into a union, never overwrite
- null only sets ``nullable``
- non-JSON bodies are opaque strings with no further inference
"""

import json
from dataclasses import dataclass
from functools import reduce
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class Kind:
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    UNION = "union"
    UNKNOWN = "unknown"


# Examples longer than this are cut before being kept on a node
MAX_EXAMPLE_LENGTH = 200


@dataclass(frozen=True)
class SchemaNode:
    """
    Type descriptor for one position in a JSON document.

    Attributes:
        types: Non-null kinds observed at this position
        nullable: True if null was observed
        properties: (name, node) pairs sorted by name, for objects
        required: Property names present in every object sample; None when
            no object was observed
        items: Merged element schema, for arrays (None if only empty arrays)
        example: Smallest scalar sample by canonical JSON text
        opaque: Built from a body that was not JSON
    """

    types: FrozenSet[str] = frozenset()
    nullable: bool = False
    properties: Tuple[Tuple[str, 'SchemaNode'], ...] = ()
    required: Optional[FrozenSet[str]] = None
    items: Optional['SchemaNode'] = None
    example: Any = None
    opaque: bool = False

    @property
    def kind(self) -> str:
        if len(self.types) > 1:
            return Kind.UNION
        if self.types:
            return next(iter(self.types))
        return Kind.NULL if self.nullable else Kind.UNKNOWN

    @property
    def is_union(self) -> bool:
        return len(self.types) > 1

    @property
    def property_map(self) -> Dict[str, 'SchemaNode']:
        return dict(self.properties)

    @classmethod
    def from_value(cls, value: Any) -> 'SchemaNode':
        """Infer a node from one decoded JSON value."""
        if value is None:
            return cls(nullable=True)

        # bool before number: bool is an int subclass
        if isinstance(value, bool):
            return cls(types=frozenset([Kind.BOOLEAN]), example=value)

        if isinstance(value, (int, float)):
            return cls(types=frozenset([Kind.NUMBER]), example=value)

        if isinstance(value, str):
            return cls(types=frozenset([Kind.STRING]), example=value[:MAX_EXAMPLE_LENGTH])

        if isinstance(value, list):
            items = unify(cls.from_value(element) for element in value) if value else None
            return cls(types=frozenset([Kind.ARRAY]), items=items)

        if isinstance(value, dict):
            properties = tuple(
                (str(key), cls.from_value(value[key]))
                for key in sorted(value, key=str)
            )
            return cls(
                types=frozenset([Kind.OBJECT]),
                properties=properties,
                required=frozenset(name for name, _ in properties)
            )

        return cls(types=frozenset([Kind.STRING]), example=str(value)[:MAX_EXAMPLE_LENGTH])

    @classmethod
    def opaque_string(cls, text: str) -> 'SchemaNode':
        """Node for a body that is not structured data."""
        return cls(types=frozenset([Kind.STRING]), example=text[:MAX_EXAMPLE_LENGTH], opaque=True)

    def merge(self, other: 'SchemaNode') -> 'SchemaNode':
        """Widen this node to also accept everything ``other`` accepts."""
        if self.required is None:
            required = other.required
        elif other.required is None:
            required = self.required
        else:
            required = self.required & other.required

        mine = self.property_map
        theirs = other.property_map
        properties = []
        for name in sorted(set(mine) | set(theirs)):
            if name in mine and name in theirs:
                properties.append((name, mine[name].merge(theirs[name])))
            else:
                properties.append((name, mine.get(name) or theirs[name]))

        if self.items is None:
            items = other.items
        elif other.items is None:
            items = self.items
        else:
            items = self.items.merge(other.items)

        return SchemaNode(
            types=self.types | other.types,
            nullable=self.nullable or other.nullable,
            properties=tuple(properties),
            required=required,
            items=items,
            example=_pick_example(self.example, other.example),
            opaque=self.opaque or other.opaque
        )


EMPTY = SchemaNode()


def _pick_example(a: Any, b: Any) -> Any:
    """Deterministic choice independent of argument order."""
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b, key=lambda value: json.dumps(value, sort_keys=True))


def unify(nodes: Iterable[SchemaNode]) -> SchemaNode:
    """Fold nodes into one, starting from the empty schema."""
    return reduce(lambda merged, node: merged.merge(node), nodes, EMPTY)
