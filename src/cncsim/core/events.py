"""Well-known event type constants.

Defined centrally so publishers and subscribers reference the same strings.
"""

# --- Connectivity ---------------------------------------------------------

CONNECTION_CHANGED = "sim.connection.changed"
CNC_LINK_CHANGED = "sim.cnc_link.changed"
PHASE_CHANGED = "sim.phase.changed"

# --- Lifecycle ------------------------------------------------------------

REBOOT_REQUESTED = "sim.reboot.requested"
SHUTDOWN_STARTED = "sim.shutdown.started"
SD_ERROR_CHANGED = "sim.sd_error.changed"
HEALTH_CHANGED = "sim.health.changed"

# --- Diagnostics ----------------------------------------------------------

LOG_ADDED = "sim.log.added"
