"""Microsoft Graph calendar client."""

from .graph_client import GraphCalendarClient, RoomTarget, graph_event_to_calendar_event

__all__ = ["GraphCalendarClient", "RoomTarget", "graph_event_to_calendar_event"]
