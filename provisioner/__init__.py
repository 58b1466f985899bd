"""
Application provisioner.

Brings a host from an unknown state to a running multi-service deployment:
system packages, runtime versions, project dependencies, database, schema
migrations, systemd services and a final readiness check.
"""
