"""Transit RT Proxy: GTFS-Realtime trip report reconciliation."""
