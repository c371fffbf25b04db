"""Plain-text summary of an autofill session."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import CheckboxGroup, Field


def _describe_field(field: Field) -> str:
    if field.mapped_keypath is None:
        return f"  {field.label}: {field.value} (entered manually)"
    method = field.match_method.value if field.match_method else "manual"
    return f"  {field.label} -> {field.mapped_keypath} = {field.value} [{method}, {field.match_confidence:.2f}]"


def build_summary(
    fields: Sequence[Field],
    groups: Sequence[CheckboxGroup] = (),
    signature_provided: bool = False,
    signature_location: Optional[str] = None,
    signature_drawn: bool = True,
) -> str:
    """Matched fields, unmatched fields, checked options and signature status."""

    filled = [field for field in fields if field.value]
    unfilled = [field for field in fields if not field.value]

    lines: List[str] = ["Form autofill summary", "=" * 21]
    lines.append(f"Fields: {len(fields)} ({len(filled)} filled, {len(unfilled)} without a value)")
    lines.append("")

    lines.append("Filled fields:")
    lines.extend(_describe_field(field) for field in filled)
    if not filled:
        lines.append("  (none)")
    lines.append("")

    lines.append("Unmatched fields:")
    for field in unfilled:
        hint = "no mapping yet" if field.mapped_keypath is None else f"{field.mapped_keypath} has no value"
        lines.append(f"  {field.label} ({hint})")
    if not unfilled:
        lines.append("  (none)")
    lines.append("")

    lines.append("Checked options:")
    checked_any = False
    for group in groups:
        for option in group.checked_options:
            checked_any = True
            label = group.group_label or "Checkbox"
            lines.append(f"  {label}: {option.associated_text or '(unlabeled option)'}")
    if not checked_any:
        lines.append("  (none)")
    lines.append("")

    if signature_provided and not signature_drawn:
        status = "provided, not drawn on this page"
    elif signature_provided:
        status = f"placed ({signature_location})" if signature_location else "placed"
    else:
        status = "not provided"
    lines.append(f"Signature: {status}")
    return "\n".join(lines) + "\n"


__all__ = ["build_summary"]
