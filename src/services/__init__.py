"""
Long-running services: MQTT connection lifecycle and the bridge orchestrator
"""
