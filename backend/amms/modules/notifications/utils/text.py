from __future__ import annotations


def FormatDaysText(days_before: int) -> str:
    if days_before <= 0:
        return "today"
    if days_before == 1:
        return "tomorrow"
    return f"in {days_before} days"


def FormatRepairDuration(duration_minutes: int) -> str:
    minutes = max(0, int(duration_minutes))
    hours, remainder = divmod(minutes, 60)
    if hours and remainder:
        return f"{hours}h {remainder}m"
    if hours:
        return f"{hours}h"
    return f"{remainder}m"


def BuildEmergencyBody(equipment_code: str, symptom: str | None) -> str:
    cleaned = (symptom or "").strip()
    if cleaned:
        return f"[{equipment_code}] {cleaned}"
    return f"Emergency repair requested for equipment {equipment_code}."


def BuildCompletedBody(equipment_code: str, rating: int | None) -> str:
    body = f"[{equipment_code}] Repair has been completed."
    if rating is not None:
        body += f" (rating: {rating}/10)"
    return body
