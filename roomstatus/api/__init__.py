"""aiohttp server for the roomstatus kiosk."""
