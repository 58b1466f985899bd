"""
Component modules for the provisioner.

Each component is one step of the provisioning pipeline. Components check
whether their effect is already in place before changing anything.
"""
