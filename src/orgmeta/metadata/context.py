"""Prompt context for the downstream query agent.

Renders the cached custom objects of an org into the markdown section the
agent's system prompt embeds, so it only queries objects and fields that
exist in that org.
"""

from __future__ import annotations

from src.orgmeta.metadata.schemas import AvailableObjects, CustomObjectDescriptor

QUERY_RULES = """IMPORTANT RULES FOR CUSTOM OBJECTS:
- Only query custom objects listed above
- Use the EXACT field API names (ending in __c)
- When querying messages/conversations, ALWAYS include the content field
- Include relevant fields like Direction, From, To, Status in your SELECT
- Always ORDER BY CreatedDate DESC for recent records"""


def describe_custom_object(
    obj: CustomObjectDescriptor,
    max_fields: int = 8,
    max_picklist_values: int = 5,
) -> str:
    """Markdown block for one custom object."""
    lines = [f"### {obj.name} ({obj.label})"]
    if obj.description:
        lines.append(obj.description)
    # Count goes on the description line, or the heading when there is none
    if obj.record_count is not None:
        lines[-1] += f" - {obj.record_count} records"

    if obj.key_fields:
        lines.append("Fields:")
        for field in obj.key_fields[:max_fields]:
            if isinstance(field, str):
                lines.append(f"  - {field}")
                continue
            entry = f"  - {field.name} ({field.label}) [{field.type}]"
            if field.picklist_values:
                entry += f" values: {', '.join(field.picklist_values[:max_picklist_values])}"
            if field.reference_to:
                entry += f" -> {field.reference_to}"
            lines.append(entry)

    if obj.sample_fields:
        lines.append(f"Commonly used fields: {', '.join(obj.sample_fields)}")

    return "\n".join(lines)


def build_custom_objects_context(
    available: AvailableObjects,
    max_fields: int = 8,
    max_picklist_values: int = 5,
) -> str:
    """Custom-objects section of the agent prompt; empty when there are none."""
    if not available.custom_objects:
        return ""

    blocks = [
        describe_custom_object(obj, max_fields, max_picklist_values)
        for obj in available.custom_objects
    ]
    return "## CUSTOM OBJECTS IN THIS ORG\n\n" + "\n\n".join(blocks) + "\n\n" + QUERY_RULES + "\n"
