"""
Output sinks: the tenant-isolated processed store and alert notifiers.
"""
