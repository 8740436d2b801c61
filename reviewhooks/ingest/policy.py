from __future__ import annotations

from reviewhooks.models.enums import Origin, Provider
from reviewhooks.models.integration import Integration, Location

def allows(integration: Integration, origin: Origin) -> bool:
    # terminal is gated by its own switch, everything else counts as checkout
    if origin == Origin.terminal:
        return bool(integration.trigger_on_terminal)
    return bool(integration.trigger_on_checkout)

def disabled_reason(origin: Origin) -> str:
    return f"{origin.value}_trigger_disabled"

def find_location(integration: Integration, location_id: str | None) -> Location | None:
    if not location_id:
        return None
    for loc in integration.locations:
        if loc.external_location_id == location_id:
            return loc
    return None

def location_allowed(integration: Integration, location_id: str | None) -> bool:
    if not location_id:
        return True
    loc = find_location(integration, location_id)
    if loc is not None:
        return bool(loc.is_enabled)
    # square locations are synced up front, so an unknown one is not opted in
    if integration.provider == Provider.square.value:
        return False
    return not integration.locations
