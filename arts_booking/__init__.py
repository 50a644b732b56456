"""Resource booking and conflict detection API for arts organizations."""
