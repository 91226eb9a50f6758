# Marks `device_inventory.deps` as a package for the request dependencies.
